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
Custom exceptions for the oidc-debug package.

Fatal errors (config, discovery, listener bind, browser launch) end the run with a
failed outcome. The remaining errors are reported to the operator and the flow carries on.
"""


class OIDCDebugError(Exception):
    """Base exception for all oidc-debug errors."""


class ConfigError(OIDCDebugError):
    """Raised when the configuration file cannot be read or parsed."""


class ConfigValidationError(ConfigError):
    """
    Raised when the configuration fails validation.
    All problems are collected so the operator can fix them in one pass.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("config errors:\n  " + "\n  ".join(self.errors))


class DiscoveryError(OIDCDebugError):
    """Raised when the provider metadata cannot be fetched or is unusable."""


class ListenerBindError(OIDCDebugError):
    """Raised when the local callback listener cannot bind or serve."""


class BrowserLaunchError(OIDCDebugError):
    """Raised when navigation to the local login route cannot be started."""


class ExchangeError(OIDCDebugError):
    """Raised when the authorization code cannot be exchanged for tokens."""


class TokenFieldError(OIDCDebugError):
    """Raised when the token response has a missing, mistyped or empty id_token."""


class TokenFormatError(OIDCDebugError):
    """Raised when a token is not a decodable JWT."""


class ClaimsDisplayError(OIDCDebugError):
    """Raised when the provider's supported-claims document cannot be rendered."""


class OversizedResponseError(OIDCDebugError):
    """Raised when an HTTP response is too large."""


class CompletionError(OIDCDebugError):
    """Raised when the completion signal is consumed more than once."""


class SigningKeyError(OIDCDebugError):
    """Raised when the mock provider cannot load its signing key or sign a token."""
