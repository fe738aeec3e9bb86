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
Authorization code exchange and JWT payload decoding.

Decoding is for display only. Signatures are never verified.
"""

import binascii
import json

import httpx
from authlib.common.encoding import to_bytes, urlsafe_b64decode
from opentelemetry import trace
from pydantic import ValidationError

from oidc_debug.config import FlowConfig
from oidc_debug.exceptions import ExchangeError, OversizedResponseError, TokenFormatError
from oidc_debug.models import ProviderMetadata, TokenResponse
from oidc_debug.transport import fetch
from oidc_debug.utils.logger import logger
from oidc_debug.utils.pretty import indent_json

tracer = trace.get_tracer(__name__)

CLAIMS_PREFIX = "  "


async def exchange_code(
    client: httpx.AsyncClient,
    metadata: ProviderMetadata,
    config: FlowConfig,
    code: str,
    max_bytes: int = 1_000_000,
) -> TokenResponse:
    """
    Exchanges an authorization code at the token endpoint.

    Confidential clients authenticate with HTTP Basic. Without a client secret the
    client_id is sent in the form body instead.

    Args:
        client: The HTTP client shared with discovery.
        metadata: The discovered provider metadata.
        config: The flow configuration.
        code: The authorization code from the callback.
        max_bytes: Largest accepted response size.

    Returns:
        TokenResponse: The parsed token response.

    Raises:
        ExchangeError: On network failure, an error status, or an unparseable body.
    """
    url = metadata.token_endpoint
    form = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": config.redirect_uri,
    }
    secret = config.client_secret.get_secret_value()
    auth: httpx.BasicAuth | None = None
    if secret:
        auth = httpx.BasicAuth(config.client_id, secret)
    else:
        form["client_id"] = config.client_id

    with tracer.start_as_current_span("exchange_code") as span:
        span.set_attribute("oidc.token_endpoint", url)
        try:
            response, content = await fetch(
                client,
                url,
                method="POST",
                max_bytes=max_bytes,
                data=form,
                auth=auth,
                headers={"Accept": "application/json"},
            )
        except (httpx.HTTPError, OversizedResponseError) as e:
            raise ExchangeError(f"Token request to {url} failed: {e}") from e

        span.set_attribute("http.status_code", response.status_code)

    try:
        data = json.loads(content)
    except ValueError:
        data = None

    if response.is_error:
        if isinstance(data, dict) and "error" in data:
            detail = str(data["error"])
            if data.get("error_description"):
                detail = f"{detail}: {data['error_description']}"
        else:
            detail = content.decode("utf-8", errors="replace").strip()
        raise ExchangeError(f"Token endpoint returned {response.status_code}: {detail}")

    if not isinstance(data, dict):
        raise ExchangeError(f"Token endpoint returned a non-JSON-object body: {content[:200]!r}")

    try:
        token = TokenResponse.model_validate(data)
    except ValidationError as e:
        raise ExchangeError(f"Invalid token response: {e}") from e

    logger.info(f"Exchanged code for token (type={token.token_type}, expires_in={token.expires_in})")
    return token


def decode_token(token: str) -> str:
    """
    Decodes the claims segment of a JWT and renders it as indented JSON.

    Args:
        token: A compact JWT (``header.claims[.signature]``).

    Returns:
        str: The claims, indented and prefixed for display.

    Raises:
        TokenFormatError: If the token has fewer than two segments or the claims are not base64url JSON.
    """
    segments = token.split(".")
    if len(segments) < 2:
        raise TokenFormatError("invalid token received: expected at least 2 dot-separated segments")

    try:
        payload = urlsafe_b64decode(to_bytes(segments[1]))
    except (binascii.Error, ValueError) as e:
        raise TokenFormatError(f"claims segment is not valid base64url: {e}") from e

    try:
        return indent_json(payload, CLAIMS_PREFIX)
    except ValueError as e:
        raise TokenFormatError(f"claims segment is not valid JSON: {e}") from e
