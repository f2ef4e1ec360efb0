"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy shared by the dispatcher and the HTTP layer.
"""

from __future__ import annotations

from .types import DispatchFailure, FailureKind


class GatewayError(RuntimeError):
    """Base class for failures that map onto one error-envelope kind."""

    kind: FailureKind = "internal_error"

    def __init__(self, message: str, *, provider_status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider_status = provider_status

    def to_failure(self) -> DispatchFailure:
        return DispatchFailure(
            kind=self.kind,
            message=self.message,
            provider_status=self.provider_status,
        )


class ValidationError(GatewayError, ValueError):
    """Raised for malformed payloads before any cache or upstream I/O."""

    kind: FailureKind = "validation_error"


class UnknownProviderError(GatewayError, LookupError):
    """Raised when a request names a provider absent from configuration."""

    kind: FailureKind = "unknown_provider"


class UnsupportedCapabilityError(GatewayError):
    """Raised when a provider kind cannot serve the requested capability."""

    kind: FailureKind = "unsupported_capability"


class UpstreamError(GatewayError):
    """Raised when the upstream provider failed or was unreachable."""

    kind: FailureKind = "upstream_error"


class CacheUnavailableError(GatewayError):
    """Raised by cache backends; always absorbed and degraded to a miss."""

    kind: FailureKind = "cache_unavailable"


class InternalError(GatewayError):
    """Raised for unexpected failures inside dispatch logic."""

    kind: FailureKind = "internal_error"


class ConfigurationError(ValueError):
    """Raised when gateway configuration cannot be loaded or is inconsistent."""
