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
Data models for the oidc-debug package.
"""

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from oidc_debug.exceptions import OIDCDebugError, TokenFieldError


class ProviderMetadata(BaseModel):
    """
    OIDC Configuration from .well-known/openid-configuration.

    Only the endpoints the flow needs are typed. The full document is kept
    in ``document`` for display.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    issuer: str = Field(..., description="The OIDC issuer URL.")
    authorization_endpoint: str = Field(..., description="The authorization endpoint URL.")
    token_endpoint: str = Field(..., description="The token endpoint URL.")
    jwks_uri: str | None = Field(default=None, description="The URL to the JWKS.")
    userinfo_endpoint: str | None = Field(default=None, description="The userinfo endpoint URL.")
    document: dict[str, Any] = Field(default_factory=dict, description="The raw discovery document.")

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ProviderMetadata":
        return cls.model_validate({**document, "document": dict(document)})


class AuthorizationRequest(BaseModel):
    """Authorization request parameters for the authorization code flow."""

    model_config = ConfigDict(frozen=True)

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    scopes: list[str] = Field(default_factory=list)
    extra_params: dict[str, list[str]] = Field(default_factory=dict)
    state: str

    def build_url(self) -> str:
        """
        Build the complete authorization URL.

        Parameters are merged into any query string the endpoint already carries.
        Extra parameters with several values are repeated.
        """
        params: list[tuple[str, str]] = [
            ("response_type", "code"),
            ("client_id", self.client_id),
            ("redirect_uri", self.redirect_uri),
        ]
        if self.scopes:
            params.append(("scope", " ".join(self.scopes)))
        params.append(("state", self.state))
        for name, values in self.extra_params.items():
            params.extend((name, value) for value in values)

        return str(httpx.URL(self.authorization_endpoint).copy_merge_params(params))


class CallbackKind(StrEnum):
    ERROR = "error"
    CODE = "code"
    ID_TOKEN = "id_token"
    TOKEN = "token"


class CallbackResult(BaseModel):
    """
    One actionable item found in the callback query.

    A single callback may carry several items; each is handled on its own.
    """

    model_config = ConfigDict(frozen=True)

    kind: CallbackKind
    value: str
    description: str | None = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> list["CallbackResult"]:
        """
        Extracts the present items in processing order: error, code, id_token, token.

        Empty values count as absent.
        """
        results = []
        for kind in CallbackKind:
            value = query.get(kind.value)
            if not value:
                continue
            description = query.get("error_description") if kind is CallbackKind.ERROR else None
            results.append(cls(kind=kind, value=value, description=description))
        return results


class TokenResponse(BaseModel):
    """
    Response from the token endpoint.

    ``id_token`` is kept as whatever JSON type the provider sent so that a
    mistyped value can be reported rather than rejected during parsing.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    token_type: str | None = None
    id_token: Any = None
    access_token: str | None = None
    refresh_token: str | None = None
    scope: list[str] = Field(default_factory=list)
    expires_in: int | None = None

    @field_validator("scope", mode="before")
    @classmethod
    def split_scope(cls, v: Any) -> Any:
        # RFC 6749 uses a space-delimited string, some providers send a list
        if v is None:
            return []
        if isinstance(v, str):
            return v.split()
        return v

    def require_id_token(self) -> str:
        """
        Returns the ID token.

        Raises:
            TokenFieldError: If the field is missing, not a string, or empty.
        """
        if "id_token" not in self.model_fields_set or self.id_token is None:
            raise TokenFieldError("Result did not contain an id_token")
        if not isinstance(self.id_token, str):
            raise TokenFieldError("id_token was not of type string")
        if not self.id_token:
            raise TokenFieldError("id_token was empty")
        return self.id_token


class FlowStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"


class FlowOutcome(BaseModel):
    """
    Terminal result of one flow run.

    Attributes:
        status (FlowStatus): Whether the run completed or failed fatally.
        error (OIDCDebugError | None): The fatal error, when failed.
        decoded_tokens (list[str]): Rendered claims of every token displayed, in order.
        exchange_count (int): Number of token exchange calls made.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: FlowStatus
    error: OIDCDebugError | None = None
    decoded_tokens: list[str] = Field(default_factory=list)
    exchange_count: int = 0

    @property
    def ok(self) -> bool:
        return self.status is FlowStatus.COMPLETED

    @classmethod
    def completed(cls, decoded_tokens: list[str] | None = None, exchange_count: int = 0) -> "FlowOutcome":
        return cls(
            status=FlowStatus.COMPLETED,
            decoded_tokens=list(decoded_tokens or []),
            exchange_count=exchange_count,
        )

    @classmethod
    def failed(cls, error: OIDCDebugError) -> "FlowOutcome":
        return cls(status=FlowStatus.FAILED, error=error)
