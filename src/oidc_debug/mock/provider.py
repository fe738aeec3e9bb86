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
Mock OIDC provider replying with pre-canned responses.

Every authorization request is approved with the same code and every code is
exchanged for a freshly signed ID token of the same subject.
"""

import functools
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
from authlib.jose import RSAKey
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route

from oidc_debug.exceptions import BrowserLaunchError, SigningKeyError
from oidc_debug.listener import ALL_METHODS, LocalListener
from oidc_debug.mock.keys import TEST_SIGNING_KEY, load_signing_key, mint_id_token
from oidc_debug.mock.metadata import well_known_metadata
from oidc_debug.utils.logger import logger

AUTHORIZATION_CODE = "token-please"
ACCESS_TOKEN = "let-me-in"
REFRESH_TOKEN = "another-token-please"
EXPIRES_IN = 5 * 60

Handler = Callable[[Any, Request], Awaitable[Response]]


def request_uri(request: Request) -> str:
    """The request target as sent by the client: path plus query."""
    uri = request.url.path
    if request.url.query:
        uri += f"?{request.url.query}"
    return uri


def require_method(method: str) -> Callable[[Handler], Handler]:
    """Rejects any other HTTP method, HEAD included, with a 405."""

    def decorator(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapper(self: Any, request: Request) -> Response:
            if request.method != method:
                return PlainTextResponse(
                    f"method [{request.method}] not allowed for URL [{request_uri(request)}]",
                    status_code=405,
                )
            return await handler(self, request)

        return wrapper

    return decorator


class MockProvider:
    """
    In-process OIDC provider for tests and demos.

    Attributes:
        issuer (str | None): ``iss`` of minted tokens. Defaults to the request's base URL.
        app (Starlette): The provider routes.
    """

    def __init__(self, issuer: str | None = None, signing_key: str = TEST_SIGNING_KEY) -> None:
        self.issuer = issuer
        # A key that fails to load is reported by each token request
        self._key: RSAKey | None = None
        self._key_error: SigningKeyError | None = None
        try:
            self._key = load_signing_key(signing_key)
        except SigningKeyError as e:
            logger.error(f"Mock provider signing key unusable: {e}")
            self._key_error = e

        self.app = Starlette(
            routes=[
                Route("/.well-known/openid-configuration", self.handle_metadata, methods=ALL_METHODS),
                Route("/oauth2/auth", self.handle_auth, methods=ALL_METHODS),
                Route("/oauth2/token", self.handle_token, methods=ALL_METHODS),
                Route("/{path:path}", self.handle_not_found, methods=ALL_METHODS),
            ]
        )

    def signing_key(self) -> RSAKey:
        """
        The key parsed at construction.

        Raises:
            SigningKeyError: If the key given at construction could not be loaded.
        """
        if self._key is None:
            raise self._key_error or SigningKeyError("no signing key")
        return self._key

    @require_method("GET")
    async def handle_metadata(self, request: Request) -> Response:
        return JSONResponse(well_known_metadata(request.url.scheme, request.url.netloc))

    @require_method("GET")
    async def handle_auth(self, request: Request) -> Response:
        redirect_uri = request.query_params.get("redirect_uri")
        if not redirect_uri:
            return PlainTextResponse("request missing redirect_uri parameter", status_code=400)

        location = httpx.URL(redirect_uri).copy_merge_params({"code": AUTHORIZATION_CODE})
        logger.debug(f"Approving authorization request, redirecting to {location}")
        return RedirectResponse(str(location), status_code=303)

    @require_method("POST")
    async def handle_token(self, request: Request) -> Response:
        # The grant is not inspected; any request gets a token
        issuer = self.issuer or str(request.base_url).rstrip("/")
        try:
            key = self.signing_key()
        except SigningKeyError as e:
            return PlainTextResponse(f"could not load signing key : {e}", status_code=500)

        try:
            id_token = mint_id_token(key, issuer)
        except SigningKeyError as e:
            return PlainTextResponse(str(e), status_code=500)

        body = {
            "token_type": "Bearer",
            "id_token": id_token,
            "access_token": ACCESS_TOKEN,
            "refresh_token": REFRESH_TOKEN,
            "scope": ["openid"],
            "expires_in": EXPIRES_IN,
        }
        return Response(
            json.dumps(body, indent=2) + "\n",
            media_type="application/json",
            headers={"Cache-Control": "no-store", "Pragma": "no-cache"},
        )

    async def handle_not_found(self, request: Request) -> Response:
        return PlainTextResponse(f"URL [{request_uri(request)}] not found for [{request.method}]", status_code=404)

    @asynccontextmanager
    async def running(self, host: str = "127.0.0.1", port: int = 0) -> AsyncIterator[str]:
        """
        Serves the provider in the background for the duration of the block.

        Yields:
            str: The base URL, e.g. ``http://127.0.0.1:54321``.
        """
        listener = LocalListener(self.app, host=host, port=port)
        async with listener.running():
            logger.debug(f"Mock provider serving on {listener.base_url}")
            yield listener.base_url

    async def serve(self, host: str = "localhost", port: int = 4444) -> None:
        """Serves the provider until interrupted."""
        listener = LocalListener(self.app, host=host, port=port, log_level="info")
        listener.bind()
        logger.info(f"Mock OIDC provider listening on {listener.base_url}")
        await listener.serve()


async def open_url(url: str, client: httpx.AsyncClient | None = None) -> None:
    """
    Stands in for a browser by following redirects until a final response.

    Raises:
        BrowserLaunchError: If a request fails or the final response is not 200.
    """
    owned = client is None
    client = client or httpx.AsyncClient(follow_redirects=True, trust_env=False)
    try:
        response = await client.get(url, follow_redirects=True)
    except httpx.HTTPError as e:
        raise BrowserLaunchError(f"request to {url} failed: {e}") from e
    finally:
        if owned:
            await client.aclose()

    if response.status_code != 200:
        raise BrowserLaunchError(f"server response {response.status_code} {response.reason_phrase} : {response.text}")
