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
A minimal OIDC provider with pre-canned responses, for exercising the flow without a real IdP.
"""

from oidc_debug.mock.keys import TEST_SIGNING_KEY, load_signing_key, mint_id_token
from oidc_debug.mock.metadata import well_known_metadata
from oidc_debug.mock.provider import MockProvider, open_url, require_method

__all__ = [
    "MockProvider",
    "TEST_SIGNING_KEY",
    "load_signing_key",
    "mint_id_token",
    "open_url",
    "require_method",
    "well_known_metadata",
]
