"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

This module defines the provider-agnostic request/result types used by the gateway.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal, TypeAlias, get_args


JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]

Capability = Literal[
    "chat_completion",
    "completion",
    "embeddings",
    "audio_transcription",
    "audio_translation",
    "image_generation",
    "image_edit",
    "image_variation",
]

# Spelled the way the configuration file spells them.
ProviderKind = Literal[
    "OpenAI",
    "Azure OpenAI Service",
    "Anthropic",
    "Replicate",
    "Co:here",
]

CacheControl = Literal["default", "no-cache"]

FailureKind = Literal[
    "validation_error",
    "unknown_provider",
    "unsupported_capability",
    "upstream_error",
    "cache_unavailable",
    "internal_error",
]

CAPABILITIES: tuple[Capability, ...] = get_args(Capability)
PROVIDER_KINDS: tuple[ProviderKind, ...] = get_args(ProviderKind)

# Capabilities whose inbound call carries a binary file.
BINARY_CAPABILITIES: frozenset[Capability] = frozenset(
    {"audio_transcription", "audio_translation", "image_edit", "image_variation"}
)

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class Attachment:
    """Raw file uploaded alongside a capability request."""

    data: bytes
    filename: str = "file"
    content_type: str = "application/octet-stream"

    def describe(self) -> dict[str, JSONValue]:
        """Loggable summary that never includes the file bytes."""
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "size": len(self.data),
        }


@dataclass(frozen=True, slots=True)
class CapabilityRequest:
    """
    Normalized unit of work handed to the dispatcher.

    `deployment_id` carries the Azure deployment resolved from a header or
    payload field; other provider kinds leave it unset.
    """

    capability: Capability
    provider_name: str
    payload: JSONObject = field(default_factory=dict)
    attachment: Attachment | None = None
    cache_control: CacheControl = "default"
    deployment_id: str | None = None


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One cached upstream response with expiration metadata."""

    value: bytes
    content_type: str = JSON_CONTENT_TYPE
    stored_at: float = field(default_factory=time.time)
    expires_at: float | None = None

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (time.time() if now is None else now) > self.expires_at


@dataclass(frozen=True, slots=True)
class AdapterResult:
    """Successful upstream call as returned by a provider adapter."""

    body: bytes
    content_type: str = JSON_CONTENT_TYPE
    status: int = 200


@dataclass(frozen=True, slots=True)
class DispatchSuccess:
    """Terminal success result for one dispatched request."""

    body: bytes
    content_type: str = JSON_CONTENT_TYPE
    served_from_cache: bool = False
    ok: Literal[True] = True


@dataclass(frozen=True, slots=True)
class DispatchFailure:
    """Terminal failure result for one dispatched request."""

    kind: FailureKind
    message: str
    provider_status: int | None = None
    ok: Literal[False] = False

    def to_envelope(self) -> JSONObject:
        """Render the machine-readable error envelope."""
        return {
            "error": {
                "kind": self.kind,
                "message": self.message,
                "provider_status": self.provider_status,
            },
            "source": "provider" if self.kind == "upstream_error" else "proxy",
        }


DispatchResult: TypeAlias = DispatchSuccess | DispatchFailure
