"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request dispatch and response caching engine.

One `Dispatcher.dispatch` call moves a request through:

    Received -> (CacheLookup | Skipped) -> (CacheHit | Dispatching)
             -> (UpstreamSuccess -> CacheWrite -> Done) | (UpstreamFailure -> Done)

Cache trouble never fails a request: lookups degrade to a miss and writes are
scheduled in the background and only logged when they fail.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace

from .cache.base import CacheStore
from .coalescing import RequestCoalescer
from .config import GatewayConfig, ProviderConfig
from .errors import (
    GatewayError,
    UnknownProviderError,
    UnsupportedCapabilityError,
    ValidationError,
)
from .fingerprint import fingerprint
from .metrics import DispatchMetrics, NoOpDispatchMetrics
from .providers.contracts import ProviderAdapter, ProviderAdapterError
from .providers.registry import create_provider_adapter
from .providers.schemas import validate_payload
from .types import (
    BINARY_CAPABILITIES,
    AdapterResult,
    CacheEntry,
    CapabilityRequest,
    DispatchFailure,
    DispatchResult,
    DispatchSuccess,
    JSONObject,
)

logger = logging.getLogger("aigate.dispatcher")


@dataclass(frozen=True, slots=True)
class _Plan:
    """Everything resolved synchronously before any I/O happens."""

    request: CapabilityRequest
    provider: ProviderConfig
    adapter: ProviderAdapter
    payload: JSONObject
    deployment_id: str | None
    cache_key: str | None


class Dispatcher:
    """
    Orchestrate one capability request end to end.

    Args:
        config: Loaded gateway configuration (providers are read from it).
        adapters: Explicit adapters keyed by provider kind. When omitted,
            adapters are built on first use from the adapter registry.
        cache: Optional cache store; `None` disables caching.
        cache_ttl_s: TTL override passed to `cache.set`; `None` defers to the
            store's own default.
        coalesce: Share one upstream call among concurrent identical misses.
            Off by default, so concurrent identical misses each go upstream.
        metrics: Optional counter sink; see `aigate.metrics`.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        adapters: Mapping[str, ProviderAdapter] | None = None,
        cache: CacheStore | None = None,
        cache_ttl_s: float | None = None,
        coalesce: bool = False,
        metrics: DispatchMetrics | None = None,
    ) -> None:
        self.config = config
        self.cache = cache
        self._cache_ttl_s = cache_ttl_s
        self._adapters: dict[str, ProviderAdapter] = dict(adapters or {})
        self._use_registry = adapters is None
        self._coalescer: RequestCoalescer[AdapterResult] | None = (
            RequestCoalescer() if coalesce else None
        )
        self._pending_writes: set[asyncio.Task[None]] = set()
        self._metrics: DispatchMetrics = metrics or NoOpDispatchMetrics()

    # ------------------------------------------------------------------
    # Resolution (pure, no I/O)
    # ------------------------------------------------------------------

    def _adapter_for(self, provider: ProviderConfig) -> ProviderAdapter | None:
        adapter = self._adapters.get(provider.kind)
        if adapter is None and self._use_registry:
            adapter = create_provider_adapter(provider.kind)
            if adapter is not None:
                self._adapters[provider.kind] = adapter
        return adapter

    def _resolve_deployment(
        self, req: CapabilityRequest, provider: ProviderConfig
    ) -> str | None:
        raw = req.payload.get("deploymentId")
        from_payload = raw if isinstance(raw, str) and raw.strip() else None
        return req.deployment_id or from_payload or provider.deployment_id

    def plan(self, req: CapabilityRequest) -> _Plan:
        """
        Resolve provider, adapter, deployment and payload for `req`.

        Raises `GatewayError` subclasses; performs no cache or network I/O.
        """
        provider = self.config.get_provider(req.provider_name)
        if provider is None:
            raise UnknownProviderError(f"Invalid provider '{req.provider_name}'")

        adapter = self._adapter_for(provider)
        if adapter is None:
            raise UnsupportedCapabilityError(
                f"Provider type '{provider.kind}' is not supported by this gateway"
            )
        if req.capability not in adapter.capabilities:
            raise UnsupportedCapabilityError(
                f"Provider '{provider.name}' ({provider.kind}) does not support "
                f"capability '{req.capability}'"
            )

        deployment_id = self._resolve_deployment(req, provider)
        if adapter.requires_deployment and not deployment_id:
            raise UnsupportedCapabilityError(
                f"Provider '{provider.name}' requires a deployment id; send the "
                "'Azure-OpenAI-Deployment-Id' header or a 'deploymentId' field"
            )

        if req.capability in BINARY_CAPABILITIES and req.attachment is None:
            raise ValidationError(f"Capability '{req.capability}' requires a file upload")

        payload = validate_payload(adapter.schema_for(req.capability), req.payload)

        cache_key = None
        if self.cache is not None or self._coalescer is not None:
            cache_key = fingerprint(replace(req, deployment_id=deployment_id))

        return _Plan(
            request=req,
            provider=provider,
            adapter=adapter,
            payload=payload,
            deployment_id=deployment_id,
            cache_key=cache_key,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, req: CapabilityRequest) -> DispatchResult:
        """Serve `req` from cache or upstream and return exactly one result."""
        try:
            plan = self.plan(req)
        except GatewayError as exc:
            logger.info(
                "rejected %s request for provider %r: %s",
                req.capability,
                req.provider_name,
                exc.message,
            )
            return self._failed(req, exc.to_failure())

        if (
            self.cache is not None
            and plan.cache_key is not None
            and req.cache_control != "no-cache"
        ):
            hit = await self._lookup(plan.cache_key)
            tags = {"capability": req.capability}
            if hit is not None:
                logger.debug("cache hit for %s/%s", req.provider_name, req.capability)
                self._metrics.incr("dispatch_cache_hits_total", tags=tags)
                return DispatchSuccess(
                    body=hit.value,
                    content_type=hit.content_type,
                    served_from_cache=True,
                )
            self._metrics.incr("dispatch_cache_misses_total", tags=tags)

        try:
            result = await self._call_upstream(plan)
        except ProviderAdapterError as exc:
            logger.warning(
                "upstream %s failed for provider %r (status=%s): %s",
                req.capability,
                req.provider_name,
                exc.status,
                exc.message,
            )
            return self._failed(
                req,
                DispatchFailure(
                    kind="upstream_error",
                    message=exc.message,
                    provider_status=exc.status,
                ),
            )
        except GatewayError as exc:
            return self._failed(req, exc.to_failure())
        except Exception:
            logger.exception(
                "unexpected failure dispatching %s to provider %r",
                req.capability,
                req.provider_name,
            )
            return self._failed(
                req,
                DispatchFailure(kind="internal_error", message="Internal server error."),
            )

        self._metrics.incr(
            "dispatch_upstream_success_total", tags={"provider": req.provider_name}
        )
        if self.cache is not None and plan.cache_key is not None:
            self._schedule_write(plan.cache_key, result)

        return DispatchSuccess(
            body=result.body,
            content_type=result.content_type,
            served_from_cache=False,
        )

    def _failed(self, req: CapabilityRequest, failure: DispatchFailure) -> DispatchFailure:
        self._metrics.incr(
            "dispatch_failures_total",
            tags={"capability": req.capability, "kind": failure.kind},
        )
        return failure

    async def _call_upstream(self, plan: _Plan) -> AdapterResult:
        req = plan.request

        async def _invoke() -> AdapterResult:
            return await plan.adapter.invoke(
                req.capability,
                plan.provider,
                plan.payload,
                req.attachment,
                deployment_id=plan.deployment_id,
            )

        if self._coalescer is not None and plan.cache_key is not None:
            result, joined = await self._coalescer.run(plan.cache_key, _invoke)
            if joined:
                logger.debug("joined in-flight call for %s", req.capability)
            return result
        return await _invoke()

    # ------------------------------------------------------------------
    # Cache I/O (best effort)
    # ------------------------------------------------------------------

    async def _lookup(self, key: str) -> CacheEntry | None:
        assert self.cache is not None
        try:
            entry = await self.cache.get(key)
        except Exception as exc:
            logger.warning("cache unavailable, treating lookup as miss: %s", exc)
            return None
        if entry is None:
            return None
        if not isinstance(entry, CacheEntry) or not isinstance(entry.value, bytes):
            logger.error("ignoring malformed cache entry under %s", key)
            return None
        if entry.content_type.split(";")[0].strip().endswith("json"):
            try:
                json.loads(entry.value)
            except ValueError:
                logger.error("ignoring undecodable cached JSON under %s", key)
                return None
        return entry

    def _schedule_write(self, key: str, result: AdapterResult) -> None:
        entry = CacheEntry(value=result.body, content_type=result.content_type)
        task = asyncio.create_task(self._write(key, entry))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write(self, key: str, entry: CacheEntry) -> None:
        assert self.cache is not None
        try:
            stored = await self.cache.set(key, entry, ttl_s=self._cache_ttl_s)
        except Exception as exc:
            logger.warning("cache write failed for %s: %s", key, exc)
            stored = False
        else:
            if not stored:
                logger.warning("cache write skipped for %s", key)
        if not stored:
            self._metrics.incr("dispatch_cache_write_failures_total")

    async def flush(self) -> None:
        """Wait for every scheduled cache write to finish."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain pending writes and close adapter HTTP clients."""
        await self.flush()
        for adapter in self._adapters.values():
            await adapter.aclose()
