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
Diagnostic harness for the OpenID Connect authorization code flow.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import FlowConfig, HarnessSettings
from .exceptions import OIDCDebugError
from .flow import AuthorizationCodeFlow, start
from .mock import MockProvider
from .models import FlowOutcome, FlowStatus, ProviderMetadata, TokenResponse

__all__ = [
    "AuthorizationCodeFlow",
    "FlowConfig",
    "FlowOutcome",
    "FlowStatus",
    "HarnessSettings",
    "MockProvider",
    "OIDCDebugError",
    "ProviderMetadata",
    "TokenResponse",
    "start",
]
