"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Thread-safe registry of provider adapter factories keyed by provider kind.
"""

from __future__ import annotations

from collections.abc import Callable
from threading import Lock

from ..types import PROVIDER_KINDS
from .contracts import ProviderAdapter

AdapterFactory = Callable[[], ProviderAdapter]

_REGISTRY: dict[str, AdapterFactory] = {}
_LOCK = Lock()


class ProviderRegistryError(RuntimeError):
    """Raised when adapter registration/resolution fails."""


def register_provider_adapter(
    kind: str,
    factory: AdapterFactory,
    *,
    overwrite: bool = False,
) -> None:
    """Register the adapter factory serving one provider kind."""
    if kind not in PROVIDER_KINDS:
        raise ProviderRegistryError(f"Unknown provider type '{kind}'")

    with _LOCK:
        if kind in _REGISTRY and not overwrite:
            raise ProviderRegistryError(f"Adapter already registered: {kind}")
        _REGISTRY[kind] = factory


def create_provider_adapter(kind: str) -> ProviderAdapter | None:
    """Build a fresh adapter for `kind`, or `None` when no adapter serves it."""
    with _LOCK:
        factory = _REGISTRY.get(kind)
    if factory is None:
        return None
    return factory()


def list_provider_adapters() -> list[str]:
    """List provider kinds with a registered adapter in deterministic order."""
    with _LOCK:
        return sorted(_REGISTRY.keys())
