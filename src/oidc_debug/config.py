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
Configuration for the oidc-debug package.

FlowConfig describes one flow and is read from a YAML file.
HarnessSettings holds operational transport defaults and is read from the environment.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oidc_debug.exceptions import ConfigError, ConfigValidationError

DEFAULT_CLIENT_PORT = 4447
MAX_PORT = 65535


class FlowConfig(BaseModel):
    """
    Settings for a single authorization code flow.

    Field aliases match the keys of the YAML config file.

    Attributes:
        issuer_url (str): Base URL of the OIDC provider (``issuerURL``).
        insecure (bool): Skip TLS certificate verification when talking to the provider.
        scopes (list[str]): Requested scopes, in order.
        extra_params (dict[str, list[str]]): Extra authorization request parameters (``extraParams``).
        client_id (str): The OAuth2 client ID (``clientID``).
        client_secret (SecretStr): The OAuth2 client secret (``clientSecret``).
        client_port (int): Local port for the callback listener (``clientPort``).
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        validate_default=True,
        extra="ignore",
    )

    issuer_url: str = Field(default="", alias="issuerURL", description="The OIDC issuer URL.")
    insecure: bool = Field(default=False, description="Skip TLS certificate verification.")
    scopes: list[str] = Field(default_factory=lambda: ["openid"], description="Requested scopes.")
    extra_params: dict[str, list[str]] = Field(
        default_factory=dict, alias="extraParams", description="Extra authorization parameters."
    )
    client_id: str = Field(default="", alias="clientID", description="The OAuth2 client ID.")
    client_secret: SecretStr = Field(default=SecretStr(""), alias="clientSecret")
    client_port: int = Field(default=DEFAULT_CLIENT_PORT, alias="clientPort")

    @field_validator("issuer_url")
    @classmethod
    def require_issuer(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("issuerURL is required")
        return v

    @field_validator("client_id")
    @classmethod
    def require_client_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("clientID is required")
        return v

    @field_validator("client_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > MAX_PORT:
            raise ValueError(f"clientPort [{v}] is invalid")
        return v

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v: Any) -> Any:
        """Accepts a space-separated scope string as well as a list."""
        if isinstance(v, str):
            return v.split()
        return v

    @field_validator("extra_params", mode="before")
    @classmethod
    def normalize_extra_params(cls, v: Any) -> Any:
        """
        Wraps single values so every parameter maps to a list.

        ``prompt: login`` and ``prompt: [login]`` are equivalent.
        """
        if not isinstance(v, Mapping):
            return v
        return {name: list(value) if isinstance(value, (list, tuple)) else [value] for name, value in v.items()}

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.client_port}/callback"

    @property
    def login_url(self) -> str:
        return f"http://localhost:{self.client_port}/login"

    def display_dict(self) -> dict[str, Any]:
        """Config as shown to the operator, keyed like the YAML file with the secret masked."""
        return self.model_dump(mode="json", by_alias=True)


class HarnessSettings(BaseSettings):
    """
    Operational defaults for the HTTP client and the local listener.

    None of these values are protocol-significant.
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_DEBUG_",
        case_sensitive=False,
    )

    connect_timeout: float = Field(default=30.0, description="Seconds to establish a connection (TLS included).")
    read_timeout: float = Field(default=30.0, description="Seconds to wait for response data.")
    write_timeout: float = Field(default=30.0, description="Seconds to wait while sending request data.")
    pool_timeout: float = Field(default=10.0, description="Seconds to wait for a pooled connection.")
    max_connections: int = Field(default=100, description="Connection pool size.")
    keepalive_expiry: float = Field(default=90.0, description="Seconds an idle connection is kept.")
    max_response_bytes: int = Field(default=1_000_000, description="Largest accepted provider response body.")
    listener_host: str = Field(default="localhost", description="Host the callback listener binds to.")


def _format_errors(exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        ctx_error = err.get("ctx", {}).get("error")
        if err["type"] == "value_error" and ctx_error is not None:
            messages.append(str(ctx_error))
        else:
            location = ".".join(str(part) for part in err["loc"]) or "config"
            messages.append(f"{location}: {err['msg']}")
    return messages


def validate_config(raw: Mapping[str, Any]) -> FlowConfig:
    """
    Validates a raw config mapping.

    Args:
        raw: Mapping keyed like the YAML file (``issuerURL``, ``clientID``, ...).

    Returns:
        FlowConfig: The validated, immutable config.

    Raises:
        ConfigValidationError: With every problem found, not just the first.
    """
    try:
        return FlowConfig.model_validate(dict(raw))
    except ValidationError as e:
        raise ConfigValidationError(_format_errors(e)) from e


def load_config(path: str | Path) -> dict[str, Any]:
    """
    Reads a YAML config file into a raw mapping. Validation is left to the caller.

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML, or is not a mapping.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data
