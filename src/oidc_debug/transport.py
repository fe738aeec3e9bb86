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
HTTP client construction and bounded response reading.
"""

from typing import Any

import httpx
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from oidc_debug.config import FlowConfig, HarnessSettings
from oidc_debug.exceptions import OversizedResponseError
from oidc_debug.utils.logger import logger


def build_http_client(config: FlowConfig, settings: HarnessSettings | None = None) -> httpx.AsyncClient:
    """
    Creates the client shared by discovery and code exchange.

    Certificate verification is disabled when ``config.insecure`` is set.
    Proxies are taken from the environment.

    Args:
        config: The flow configuration.
        settings: Timeout and pool settings. Read from the environment when omitted.

    Returns:
        httpx.AsyncClient: An instrumented client. The caller owns it and must close it.
    """
    settings = settings or HarnessSettings()
    if config.insecure:
        logger.warning(f"TLS certificate verification disabled for {config.issuer_url}")

    client = httpx.AsyncClient(
        verify=not config.insecure,
        timeout=httpx.Timeout(
            connect=settings.connect_timeout,
            read=settings.read_timeout,
            write=settings.write_timeout,
            pool=settings.pool_timeout,
        ),
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_connections,
            keepalive_expiry=settings.keepalive_expiry,
        ),
        trust_env=True,
    )

    # Instrument the client for distributed tracing
    HTTPXClientInstrumentor().instrument_client(client)
    return client


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    max_bytes: int = 1_000_000,
    **kwargs: Any,
) -> tuple[httpx.Response, bytes]:
    """
    Sends a request and reads the body, refusing bodies larger than ``max_bytes``.

    The status code is not checked; error bodies are returned so callers can report them.

    Raises:
        OversizedResponseError: If the declared or actual body size exceeds the limit.
        httpx.HTTPError: For network failures.
    """
    async with client.stream(method, url, **kwargs) as response:
        content_length = response.headers.get("Content-Length")
        if content_length:
            try:
                if int(content_length) > max_bytes:
                    raise OversizedResponseError(f"Response from {url} too large ({content_length} bytes)")
            except ValueError:
                pass

        content = bytearray()
        async for chunk in response.aiter_bytes():
            content.extend(chunk)
            if len(content) > max_bytes:
                raise OversizedResponseError(f"Response from {url} exceeded {max_bytes} bytes")

    logger.debug(f"{method} {url} -> {response.status_code} ({len(content)} bytes)")
    return response, bytes(content)
