# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/oidc_debug

"""
OIDC provider discovery.
"""

import json

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from oidc_debug.exceptions import ClaimsDisplayError, DiscoveryError, OversizedResponseError
from oidc_debug.models import ProviderMetadata
from oidc_debug.transport import fetch
from oidc_debug.utils.logger import logger
from oidc_debug.utils.pretty import indent_json

tracer = trace.get_tracer(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


def discovery_url(issuer_url: str) -> str:
    """Returns the well-known metadata URL for an issuer, with or without a trailing slash."""
    return issuer_url.rstrip("/") + WELL_KNOWN_PATH


async def discover(issuer_url: str, client: httpx.AsyncClient, max_bytes: int = 1_000_000) -> ProviderMetadata:
    """
    Fetches and parses the provider's discovery document.

    The request is attempted once. An issuer that differs from ``issuer_url``
    is logged but accepted, since the point is to show what the provider says.

    Args:
        issuer_url: The configured issuer URL.
        client: The HTTP client to use.
        max_bytes: Largest accepted document size.

    Returns:
        ProviderMetadata: The provider's endpoints and raw document.

    Raises:
        DiscoveryError: If the document is unreachable, not a JSON object, or lacks a required endpoint.
    """
    url = discovery_url(issuer_url)

    with tracer.start_as_current_span("discover") as span:
        span.set_attribute("oidc.discovery_url", url)
        try:
            response, content = await fetch(client, url, max_bytes=max_bytes)
        except (httpx.HTTPError, OversizedResponseError) as e:
            raise DiscoveryError(f"Failed to fetch OIDC configuration from {url}: {e}") from e

        if response.status_code != httpx.codes.OK:
            body = content.decode("utf-8", errors="replace").strip()
            raise DiscoveryError(f"Failed to fetch OIDC configuration from {url}: {response.status_code} {body}")

        try:
            data = json.loads(content)
        except ValueError as e:
            raise DiscoveryError(f"Invalid JSON in OIDC configuration from {url}: {e}") from e

        if not isinstance(data, dict):
            raise DiscoveryError(f"OIDC configuration from {url} is not a JSON object")

        try:
            metadata = ProviderMetadata.from_document(data)
        except ValidationError as e:
            raise DiscoveryError(f"Invalid OIDC configuration from {url}: {e}") from e

    if metadata.issuer.rstrip("/") != issuer_url.rstrip("/"):
        logger.warning(f"Issuer mismatch: configured {issuer_url}, provider reports {metadata.issuer}")

    logger.info(f"Discovered provider {metadata.issuer}")
    return metadata


def render_claims(metadata: ProviderMetadata) -> str:
    """
    Renders the provider's discovery document for display.

    Raises:
        ClaimsDisplayError: If the document cannot be rendered.
    """
    try:
        return indent_json(metadata.document, "  ")
    except (TypeError, ValueError) as e:
        raise ClaimsDisplayError(f"Error getting claims from provider: {e}") from e
