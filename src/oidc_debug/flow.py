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
Authorization code flow orchestration.

Drives one flow end to end: discovery, a local listener for ``/login`` and
``/callback``, browser navigation, code exchange and token display.
"""

import secrets
import sys
from collections.abc import Mapping
from typing import Any, TextIO

import anyio
import httpx
import yaml
from opentelemetry import trace
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route

from oidc_debug.browser import BrowserLauncher, open_in_browser
from oidc_debug.completion import CompletionSignal
from oidc_debug.config import FlowConfig, HarnessSettings, validate_config
from oidc_debug.discovery import discover, render_claims
from oidc_debug.exceptions import (
    BrowserLaunchError,
    ClaimsDisplayError,
    ConfigValidationError,
    DiscoveryError,
    ExchangeError,
    ListenerBindError,
    OIDCDebugError,
    TokenFieldError,
    TokenFormatError,
)
from oidc_debug.listener import ALL_METHODS, LocalListener
from oidc_debug.models import AuthorizationRequest, CallbackKind, CallbackResult, FlowOutcome, ProviderMetadata
from oidc_debug.tokens import decode_token, exchange_code
from oidc_debug.transport import build_http_client
from oidc_debug.utils.logger import logger
from oidc_debug.utils.pretty import indent_yaml

tracer = trace.get_tracer(__name__)


class AuthorizationCodeFlow:
    """
    One run of the authorization code flow.

    Each instance owns its router, completion signal and listener, so several
    flows can run in one process without sharing routes.

    Attributes:
        config (FlowConfig): The validated flow configuration.
        state (str): Random anti-replay value sent with the authorization request.
        metadata (ProviderMetadata | None): Provider metadata, once discovered.
        signal (CompletionSignal): Resolved once with the terminal outcome.
        app (Starlette): The ``/login`` and ``/callback`` routes.
    """

    def __init__(
        self,
        config: FlowConfig,
        client: httpx.AsyncClient | None = None,
        launcher: BrowserLauncher | None = None,
        out: TextIO | None = None,
        settings: HarnessSettings | None = None,
    ) -> None:
        """
        Initialize the flow.

        Args:
            config: The validated configuration.
            client: External async client (optional). If not provided, one is built from config and settings.
            launcher: Opens the login URL. Defaults to the system browser.
            out: Stream for operator-facing output. Defaults to stdout.
            settings: Transport and listener settings. Read from the environment when omitted.
        """
        self.config = config
        self.settings = settings or HarnessSettings()
        self.launcher = launcher or open_in_browser
        self.out = out if out is not None else sys.stdout
        self._internal_client = client is None
        self._client = client if client is not None else build_http_client(config, self.settings)

        # Per-run value. CSRF validation of the returned state is out of scope.
        self.state = secrets.token_urlsafe(16)
        self.metadata: ProviderMetadata | None = None
        self.signal = CompletionSignal()
        self._callback_lock: anyio.Lock | None = None
        self._decoded_tokens: list[str] = []
        self._exchange_count = 0

        self.app = Starlette(
            routes=[
                Route("/login", self.handle_login, methods=ALL_METHODS),
                Route("/callback", self.handle_callback, methods=ALL_METHODS),
            ]
        )

    async def __aenter__(self) -> "AuthorizationCodeFlow":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    def echo(self, text: str = "") -> None:
        """Writes operator-facing output."""
        print(text, file=self.out, flush=True)

    def show_config(self) -> None:
        self.echo("The config is")
        self.echo(indent_yaml(self.config.display_dict()))

    def show_provider(self, metadata: ProviderMetadata) -> None:
        """Displays the resolved endpoints and, best-effort, the provider's claims document."""
        self.echo("Resolved provider endpoint")
        self.echo(f"  AuthURL:   {metadata.authorization_endpoint}")
        self.echo(f"  TokenURL:  {metadata.token_endpoint}")

        try:
            claims = render_claims(metadata)
        except ClaimsDisplayError as e:
            logger.warning(f"Claims display failed: {e}")
            self.echo(str(e))
            return

        self.echo("Claims supported by provider")
        self.echo(claims)

    def authorization_request(self) -> AuthorizationRequest:
        if self.metadata is None:
            raise DiscoveryError("Provider metadata has not been discovered")
        return AuthorizationRequest(
            authorization_endpoint=self.metadata.authorization_endpoint,
            client_id=self.config.client_id,
            redirect_uri=self.config.redirect_uri,
            scopes=self.config.scopes,
            extra_params=self.config.extra_params,
            state=self.state,
        )

    async def handle_login(self, request: Request) -> Response:
        logger.info(f"Received {request.method} {request.url.path}")

        if request.method == "HEAD":
            return Response(status_code=200)
        if request.method != "GET":
            return PlainTextResponse("Method Not Allowed", status_code=405)

        try:
            auth_url = self.authorization_request().build_url()
        except DiscoveryError as e:
            return PlainTextResponse(str(e), status_code=503)

        self.echo(f"Redirecting client to {auth_url}")
        return RedirectResponse(auth_url, status_code=302)

    async def handle_callback(self, request: Request) -> Response:
        logger.info(f"Received {request.method} {request.url.path}")

        if request.method == "HEAD":
            return Response(status_code=200)
        if request.method != "GET":
            return PlainTextResponse("Method Not Allowed", status_code=405)

        if self._callback_lock is None:
            self._callback_lock = anyio.Lock()

        # Concurrent callbacks are serialized; only the first one does any work
        async with self._callback_lock:
            if self.signal.resolved:
                logger.warning(f"Ignoring callback, flow already {self.signal.outcome.status}")  # type: ignore[union-attr]
                return PlainTextResponse("flow already completed", status_code=409)

            for item in CallbackResult.from_query(request.query_params):
                if item.kind is CallbackKind.ERROR:
                    self.show_provider_error(item)
                elif item.kind is CallbackKind.CODE:
                    await self.show_code(item.value)
                else:
                    self.show_token(item.value)

            self.signal.resolve(
                FlowOutcome.completed(decoded_tokens=self._decoded_tokens, exchange_count=self._exchange_count)
            )

        return PlainTextResponse("done")

    def show_provider_error(self, item: CallbackResult) -> None:
        message = f"Provider returned error [{item.value}]"
        if item.description:
            message += f": {item.description}"
        self.echo(message)

    async def show_code(self, code: str) -> None:
        """Exchanges the code and displays the resulting ID token. Failures are reported, not raised."""
        self.echo("Exchanging code for token")
        if self.metadata is None:
            self.echo("Error exchanging code for token: provider metadata has not been discovered")
            return

        self._exchange_count += 1
        try:
            token = await exchange_code(
                self._client, self.metadata, self.config, code, max_bytes=self.settings.max_response_bytes
            )
        except ExchangeError as e:
            logger.warning(f"Code exchange failed: {e}")
            self.echo(f"Error exchanging code for token: {e}")
            return

        try:
            id_token = token.require_id_token()
        except TokenFieldError as e:
            self.echo(str(e))
            return

        self.show_token(id_token)

    def show_token(self, token: str) -> None:
        """Decodes and displays a token's claims. Failures are reported, not raised."""
        try:
            decoded = decode_token(token)
        except TokenFormatError as e:
            self.echo(f"Failed to decode jwt: {e}")
            return

        self._decoded_tokens.append(decoded)
        self.echo(decoded)

    def _fail(self, error: OIDCDebugError) -> FlowOutcome:
        logger.error(f"Flow failed: {error}")
        self.echo(str(error))
        outcome = FlowOutcome.failed(error)
        self.signal.resolve(outcome)
        return outcome

    async def _serve(self, listener: LocalListener) -> None:
        try:
            await listener.serve()
        except ListenerBindError as e:
            self._fail(e)
            return

        if not self.signal.resolved:
            self._fail(ListenerBindError("Listener stopped before the flow completed"))

    async def _launch(self, listener: LocalListener) -> None:
        try:
            await listener.wait_started()
        except ListenerBindError:
            # _serve reports the failure
            return

        try:
            await self.launcher(self.config.login_url)
        except BrowserLaunchError as e:
            self._fail(e)

    async def run(self) -> FlowOutcome:
        """
        Runs the flow until a terminal outcome.

        Returns:
            FlowOutcome: Completed once a callback was handled, failed on a fatal error.
        """
        with tracer.start_as_current_span("authorization_code_flow") as span:
            span.set_attribute("oidc.issuer_url", self.config.issuer_url)
            self.show_config()

            try:
                self.metadata = await discover(
                    self.config.issuer_url, self._client, max_bytes=self.settings.max_response_bytes
                )
            except DiscoveryError as e:
                return self._fail(e)

            self.show_provider(self.metadata)

            listener = LocalListener(self.app, host=self.settings.listener_host, port=self.config.client_port)
            try:
                listener.bind()
            except ListenerBindError as e:
                return self._fail(e)

            async with anyio.create_task_group() as tg:
                tg.start_soon(self._serve, listener)
                tg.start_soon(self._launch, listener)
                outcome = await self.signal.wait()
                listener.stop()

            span.set_attribute("oidc.flow_status", str(outcome.status))
            return outcome


def show_raw_config(config: Mapping[str, Any], out: TextIO) -> None:
    """Shows a config that failed validation, as read, with any secret masked."""
    shown = dict(config)
    if shown.get("clientSecret"):
        shown["clientSecret"] = "**********"
    print("The config is", file=out)
    try:
        print(indent_yaml(shown), file=out)
    except yaml.YAMLError:
        print(f"  | {shown!r}", file=out)


async def start(
    config: FlowConfig | Mapping[str, Any],
    *,
    client: httpx.AsyncClient | None = None,
    launcher: BrowserLauncher | None = None,
    out: TextIO | None = None,
    settings: HarnessSettings | None = None,
) -> FlowOutcome:
    """
    Validates the config and runs one authorization code flow.

    Args:
        config: A validated FlowConfig, or a raw mapping keyed like the YAML file.
        client: External async client (optional).
        launcher: Opens the login URL. Defaults to the system browser.
        out: Stream for operator-facing output. Defaults to stdout.
        settings: Transport and listener settings.

    Returns:
        FlowOutcome: The terminal outcome. Callers map a failed outcome to a non-zero exit.
    """
    out = out if out is not None else sys.stdout

    if not isinstance(config, FlowConfig):
        try:
            config = validate_config(config)
        except ConfigValidationError as e:
            show_raw_config(config, out)
            print("Configuration errors:", file=out)
            print(e, file=out, flush=True)
            return FlowOutcome.failed(e)

    async with AuthorizationCodeFlow(config, client=client, launcher=launcher, out=out, settings=settings) as flow:
        return await flow.run()
