"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Counter sinks for dispatcher instrumentation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class DispatchMetrics(Protocol):
    """Minimal metrics interface for dispatcher instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpDispatchMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


class PrometheusDispatchMetrics(DispatchMetrics):
    """
    Prometheus-backed dispatcher metrics.

    Counters are registered on `registry`; a private `CollectorRegistry` is
    created when none is given so several apps can live in one process.
    """

    def __init__(self, *, namespace: str = "aigate", registry: Any | None = None) -> None:
        from prometheus_client import CollectorRegistry, Counter

        self._Counter = Counter
        self._namespace = namespace
        self.registry = registry if registry is not None else CollectorRegistry()
        self._counters: dict[str, Any] = {}

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        label_names = tuple(sorted((tags or {}).keys()))
        key = f"{name}|{','.join(label_names)}"
        counter = self._counters.get(key)
        if counter is None:
            counter = self._Counter(
                name=name,
                documentation=f"aigate dispatch metric {name}",
                namespace=self._namespace,
                labelnames=label_names,
                registry=self.registry,
            )
            self._counters[key] = counter

        if label_names:
            label_values = [str((tags or {})[label]) for label in label_names]
            counter.labels(*label_values).inc(value)
        else:
            counter.inc(value)

    def asgi_app(self) -> Any:
        """ASGI app serving this registry in the Prometheus text format."""
        from prometheus_client import make_asgi_app

        return make_asgi_app(registry=self.registry)
