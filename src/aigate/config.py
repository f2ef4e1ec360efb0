"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Gateway configuration schema and explicit config-file loading.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError
from .types import JSONObject, ProviderKind

DEFAULT_CONFIG_PATH = "./aigate.json"

_STORAGE_ALIASES = {
    "memory": "memory",
    "mem": "memory",
    "inmemory": "memory",
    "in_memory": "memory",
    "redis": "redis",
    "networked": "redis",
}


def env_first(*names: str, default: str | None = None) -> str | None:
    """Return the first non-empty environment variable in `names`."""
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


class ProviderConfig(BaseModel):
    """One configured upstream provider. Immutable once loaded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    kind: ProviderKind = Field(alias="type")
    api_key: str
    url: str | None = None
    deployment_id: str | None = None

    @model_validator(mode="after")
    def _azure_requires_url(self) -> "ProviderConfig":
        if self.kind == "Azure OpenAI Service" and not self.url:
            raise ValueError(
                f"Provider '{self.name}' of type 'Azure OpenAI Service' requires 'url'"
            )
        return self

    @property
    def base_url(self) -> str | None:
        return self.url.rstrip("/") if self.url else None


class AuthSettings(BaseModel):
    """Inbound API-key authentication settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    api_key: str = ""

    @model_validator(mode="after")
    def _key_when_enabled(self) -> "AuthSettings":
        if self.enabled and not self.api_key:
            raise ValueError("authentication.api_key is required when enabled")
        return self


class RateLimitSettings(BaseModel):
    """Global fixed-window rate limit settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    window_size: float = Field(default=60.0, gt=0)
    limit: int = Field(default=60, ge=1)


class CacheSettings(BaseModel):
    """
    Response cache settings.

    `ttl` is in seconds; zero means entries never expire. Redis storage needs
    either `url` or `hostname` + `port`.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    ttl: float = Field(default=0.0, ge=0)
    storage: Literal["memory", "redis"] = "memory"
    hostname: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    username: str | None = None
    password: str | None = None
    tls: bool = False
    url: str | None = None
    db: int = Field(default=0, ge=0)
    prefix: str = "aigate:cache:"
    sweep_interval: float = Field(default=10.0, gt=0)
    max_entries: int | None = Field(default=None, ge=1)

    @field_validator("storage", mode="before")
    @classmethod
    def _normalize_storage(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _STORAGE_ALIASES.get(value.strip().lower(), value)
        return value

    @model_validator(mode="after")
    def _redis_requires_endpoint(self) -> "CacheSettings":
        if self.storage == "redis" and not self.url:
            if not self.hostname or not self.port:
                raise ValueError(
                    "Hostname and port are required for Redis cache storage."
                )
        return self

    @property
    def ttl_s(self) -> float | None:
        return self.ttl if self.ttl > 0 else None

    def redis_url(self) -> str:
        """Build a redis URL from discrete connection fields."""
        if self.url:
            return self.url
        scheme = "rediss" if self.tls else "redis"
        auth = ""
        if self.username or self.password:
            user = quote(self.username or "", safe="")
            if self.password:
                user = f"{user}:{quote(self.password, safe='')}"
            auth = f"{user}@"
        return f"{scheme}://{auth}{self.hostname}:{self.port}/{self.db}"


class GatewayConfig(BaseModel):
    """Process-wide, read-only gateway configuration."""

    model_config = ConfigDict(frozen=True)

    authentication: AuthSettings | None = None
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    cache: CacheSettings | None = None
    rate_limiting: RateLimitSettings | None = None
    # Analytics plugins are accepted for compatibility and otherwise ignored.
    plugins: dict[str, Any] | None = None
    response_format: Literal["aigate", "default"] = "aigate"
    # Expose Prometheus counters on `/metrics`.
    metrics: bool = False

    @model_validator(mode="before")
    @classmethod
    def _name_providers(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        providers = data.get("providers")
        if isinstance(providers, dict):
            named = {}
            for key, row in providers.items():
                if isinstance(row, dict):
                    row = {**row, "name": row.get("name", key)}
                named[key] = row
            data = {**data, "providers": named}
        return data

    def get_provider(self, name: str | None) -> ProviderConfig | None:
        if not name:
            return None
        return self.providers.get(name)

    @property
    def cache_enabled(self) -> bool:
        return self.cache is not None and self.cache.enabled


SAMPLE_CONFIG: JSONObject = {
    "providers": {
        "example": {
            "type": "OpenAI",
            "api_key": "YOUR_API_KEY",
        },
    },
    "cache": {
        "enabled": True,
        "ttl": 60 * 60 * 12,
        "storage": "memory",
    },
}


def resolve_config_path(path: str | os.PathLike[str] | None = None) -> Path:
    """Resolve the config path from argument, `AIGATE_CONFIG`, or default."""
    if path is not None:
        return Path(path)
    return Path(env_first("AIGATE_CONFIG", default=DEFAULT_CONFIG_PATH) or DEFAULT_CONFIG_PATH)


def parse_config(data: Any) -> GatewayConfig:
    """Validate an already-decoded config mapping."""
    try:
        return GatewayConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def load_config(path: str | os.PathLike[str] | None = None) -> GatewayConfig:
    """Load and validate the JSON configuration file."""
    resolved = resolve_config_path(path)
    try:
        raw = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Could not read configuration file '{resolved}': {exc}"
        ) from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Configuration file '{resolved}' is not valid JSON: {exc}"
        ) from exc
    return parse_config(data)


def write_sample_config(path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH) -> Path:
    """Write the starter configuration used by `aigate init`."""
    target = Path(path)
    target.write_text(json.dumps(SAMPLE_CONFIG, indent=2), encoding="utf-8")
    return target
