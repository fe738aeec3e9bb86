# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/oidc_debug

import io
from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs

import anyio
import httpx
import pytest

from oidc_debug.config import FlowConfig
from oidc_debug.flow import AuthorizationCodeFlow
from oidc_debug.models import FlowStatus, ProviderMetadata


class TokenEndpoint:
    """Records token requests and replies with a canned response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def make_flow(
    config: FlowConfig, metadata: ProviderMetadata, token_endpoint: TokenEndpoint
) -> tuple[AuthorizationCodeFlow, io.StringIO]:
    out = io.StringIO()
    flow = AuthorizationCodeFlow(
        config,
        client=httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint)),
        out=out,
    )
    flow.metadata = metadata
    return flow, out


def local_client(flow: AuthorizationCodeFlow) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=flow.app), base_url="http://localhost:4447")


@pytest.fixture
def id_token(encode_jwt: Callable[[dict[str, Any]], str]) -> str:
    return encode_jwt({"sub": "someone@test", "group": ["devs@test", "users@test"]})


@pytest.mark.asyncio
async def test_login_redirects_to_provider(flow_config: FlowConfig, provider_metadata: ProviderMetadata) -> None:
    config = flow_config.model_copy(update={"extra_params": {"prompt": ["login"]}})
    flow, out = make_flow(config, provider_metadata, TokenEndpoint(httpx.Response(500)))

    async with local_client(flow) as client:
        response = await client.get("/login")

    assert response.status_code == 302
    location = httpx.URL(response.headers["location"])
    assert str(location).startswith("https://idp.test/oauth2/auth?")
    assert location.params["response_type"] == "code"
    assert location.params["client_id"] == "testing"
    assert location.params["redirect_uri"] == "http://localhost:4447/callback"
    assert location.params["scope"] == "openid"
    assert location.params["state"] == flow.state
    assert location.params["prompt"] == "login"
    assert "Redirecting client to https://idp.test/oauth2/auth?" in out.getvalue()
    assert not flow.signal.resolved


@pytest.mark.asyncio
async def test_state_differs_per_flow(flow_config: FlowConfig, provider_metadata: ProviderMetadata) -> None:
    first, _ = make_flow(flow_config, provider_metadata, TokenEndpoint(httpx.Response(500)))
    second, _ = make_flow(flow_config, provider_metadata, TokenEndpoint(httpx.Response(500)))
    assert first.state != second.state


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/login", "/callback"])
async def test_head_is_a_no_op(path: str, flow_config: FlowConfig, provider_metadata: ProviderMetadata) -> None:
    endpoint = TokenEndpoint(httpx.Response(500))
    flow, _ = make_flow(flow_config, provider_metadata, endpoint)

    async with local_client(flow) as client:
        response = await client.head(path)

    assert response.status_code == 200
    assert not flow.signal.resolved
    assert endpoint.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
@pytest.mark.parametrize("path", ["/login", "/callback"])
async def test_other_methods_rejected(
    method: str, path: str, flow_config: FlowConfig, provider_metadata: ProviderMetadata
) -> None:
    flow, _ = make_flow(flow_config, provider_metadata, TokenEndpoint(httpx.Response(500)))

    async with local_client(flow) as client:
        response = await client.request(method, path)

    assert response.status_code == 405
    assert response.text == "Method Not Allowed"
    assert not flow.signal.resolved


@pytest.mark.asyncio
async def test_code_is_exchanged_once(
    flow_config: FlowConfig, provider_metadata: ProviderMetadata, id_token: str
) -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={"token_type": "Bearer", "id_token": id_token}))
    flow, out = make_flow(flow_config, provider_metadata, endpoint)

    async with local_client(flow) as client:
        response = await client.get("/callback", params={"code": "X"})

    assert response.status_code == 200
    assert response.text == "done"
    assert len(endpoint.requests) == 1
    assert parse_qs(endpoint.requests[0].content.decode())["code"] == ["X"]

    outcome = flow.signal.outcome
    assert outcome is not None
    assert outcome.status is FlowStatus.COMPLETED
    assert outcome.exchange_count == 1
    assert len(outcome.decoded_tokens) == 1

    printed = out.getvalue()
    assert "Exchanging code for token" in printed
    assert '"sub": "someone@test"' in printed


@pytest.mark.asyncio
async def test_id_token_only_skips_exchange(
    flow_config: FlowConfig, provider_metadata: ProviderMetadata, id_token: str
) -> None:
    endpoint = TokenEndpoint(httpx.Response(500))
    flow, out = make_flow(flow_config, provider_metadata, endpoint)

    async with local_client(flow) as client:
        response = await client.get("/callback", params={"id_token": id_token})

    assert response.text == "done"
    assert endpoint.requests == []
    assert flow.signal.outcome is not None
    assert flow.signal.outcome.exchange_count == 0
    assert '"group": [' in out.getvalue()


@pytest.mark.asyncio
async def test_every_parameter_is_processed(
    flow_config: FlowConfig, provider_metadata: ProviderMetadata, encode_jwt: Callable[[dict[str, Any]], str]
) -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={"id_token": encode_jwt({"n": 1})}))
    flow, out = make_flow(flow_config, provider_metadata, endpoint)

    async with local_client(flow) as client:
        await client.get(
            "/callback",
            params={"token": encode_jwt({"n": 3}), "id_token": encode_jwt({"n": 2}), "code": "X"},
        )

    outcome = flow.signal.outcome
    assert outcome is not None
    assert [token.split('"n": ')[1][0] for token in outcome.decoded_tokens] == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_second_callback_rejected(
    flow_config: FlowConfig, provider_metadata: ProviderMetadata, id_token: str
) -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={"id_token": id_token}))
    flow, _ = make_flow(flow_config, provider_metadata, endpoint)

    async with local_client(flow) as client:
        first = await client.get("/callback", params={"code": "X"})
        second = await client.get("/callback", params={"code": "Y"})

    assert first.text == "done"
    assert second.status_code == 409
    assert second.text == "flow already completed"
    assert len(endpoint.requests) == 1
    assert flow.signal.outcome is not None
    assert flow.signal.outcome.exchange_count == 1


@pytest.mark.asyncio
async def test_concurrent_callbacks_resolve_once(
    flow_config: FlowConfig, provider_metadata: ProviderMetadata, id_token: str
) -> None:
    endpoint = TokenEndpoint(httpx.Response(200, json={"id_token": id_token}))
    flow, _ = make_flow(flow_config, provider_metadata, endpoint)
    statuses: list[int] = []

    async with local_client(flow) as client:

        async def callback(code: str) -> None:
            response = await client.get("/callback", params={"code": code})
            statuses.append(response.status_code)

        async with anyio.create_task_group() as tg:
            for code in ("A", "B", "C"):
                tg.start_soon(callback, code)

    assert sorted(statuses) == [200, 409, 409]
    assert len(endpoint.requests) == 1


@pytest.mark.asyncio
async def test_exchange_failure_is_not_fatal(flow_config: FlowConfig, provider_metadata: ProviderMetadata) -> None:
    endpoint = TokenEndpoint(httpx.Response(400, json={"error": "invalid_grant"}))
    flow, out = make_flow(flow_config, provider_metadata, endpoint)

    async with local_client(flow) as client:
        response = await client.get("/callback", params={"code": "X"})

    assert response.text == "done"
    assert "Error exchanging code for token: Token endpoint returned 400: invalid_grant" in out.getvalue()
    assert flow.signal.outcome is not None
    assert flow.signal.outcome.ok
    assert flow.signal.outcome.decoded_tokens == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, message",
    [
        ({"access_token": "x"}, "Result did not contain an id_token"),
        ({"id_token": 12}, "id_token was not of type string"),
        ({"id_token": ""}, "id_token was empty"),
    ],
)
async def test_id_token_field_problems(
    body: dict[str, Any], message: str, flow_config: FlowConfig, provider_metadata: ProviderMetadata
) -> None:
    flow, out = make_flow(flow_config, provider_metadata, TokenEndpoint(httpx.Response(200, json=body)))

    async with local_client(flow) as client:
        response = await client.get("/callback", params={"code": "X"})

    assert response.text == "done"
    assert message in out.getvalue()


@pytest.mark.asyncio
async def test_undecodable_token_is_reported(flow_config: FlowConfig, provider_metadata: ProviderMetadata) -> None:
    flow, out = make_flow(flow_config, provider_metadata, TokenEndpoint(httpx.Response(500)))

    async with local_client(flow) as client:
        response = await client.get("/callback", params={"token": "opaque-access-token"})

    assert response.text == "done"
    assert "Failed to decode jwt: invalid token received" in out.getvalue()


@pytest.mark.asyncio
async def test_provider_error_is_reported(flow_config: FlowConfig, provider_metadata: ProviderMetadata) -> None:
    flow, out = make_flow(flow_config, provider_metadata, TokenEndpoint(httpx.Response(500)))

    async with local_client(flow) as client:
        response = await client.get(
            "/callback", params={"error": "access_denied", "error_description": "user cancelled"}
        )

    assert response.text == "done"
    assert "Provider returned error [access_denied]: user cancelled" in out.getvalue()
    assert flow.signal.resolved


@pytest.mark.asyncio
async def test_empty_callback_completes(flow_config: FlowConfig, provider_metadata: ProviderMetadata) -> None:
    flow, _ = make_flow(flow_config, provider_metadata, TokenEndpoint(httpx.Response(500)))

    async with local_client(flow) as client:
        response = await client.get("/callback")

    assert response.text == "done"
    assert flow.signal.outcome is not None
    assert flow.signal.outcome.ok
