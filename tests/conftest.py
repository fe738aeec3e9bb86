# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/oidc_debug

import base64
import json
import socket
from collections.abc import Callable
from typing import Any

import pytest

from oidc_debug.config import FlowConfig
from oidc_debug.mock.metadata import well_known_metadata
from oidc_debug.models import ProviderMetadata


def _b64url(data: dict[str, Any]) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


@pytest.fixture
def encode_jwt() -> Callable[[dict[str, Any]], str]:
    """Builds an unsigned compact JWT; the flow only ever decodes claims for display."""

    def _encode(claims: dict[str, Any]) -> str:
        return f"{_b64url({'alg': 'none', 'typ': 'JWT'})}.{_b64url(claims)}.sig"

    return _encode


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@pytest.fixture
def discovery_document() -> dict[str, Any]:
    return well_known_metadata("https", "idp.test")


@pytest.fixture
def provider_metadata(discovery_document: dict[str, Any]) -> ProviderMetadata:
    return ProviderMetadata.from_document(discovery_document)


@pytest.fixture
def flow_config() -> FlowConfig:
    return FlowConfig(
        issuer_url="https://idp.test/",
        client_id="testing",
        client_secret="123456",
        client_port=4447,
    )
