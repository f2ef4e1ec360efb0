from __future__ import annotations

import asyncio
import json

import pytest

from aigate.cache import InMemoryCacheStore
from aigate.config import parse_config
from aigate.dispatcher import Dispatcher
from aigate.providers import AzureOpenAIAdapter, OpenAIAdapter, ProviderAdapterError
from aigate.types import AdapterResult, Attachment, CacheEntry, CapabilityRequest


def run_async(coro):
    return asyncio.run(coro)


CONFIG = parse_config(
    {
        "providers": {
            "openai": {"type": "OpenAI", "api_key": "sk-test"},
            "azure": {
                "type": "Azure OpenAI Service",
                "api_key": "az-test",
                "url": "https://example.openai.azure.com",
            },
            "replicate": {"type": "Replicate", "api_key": "r"},
        }
    }
)

CHAT = {"model": "gpt-4", "messages": [{"role": "user", "content": "hello"}]}


class _RecordingOpenAI(OpenAIAdapter):
    """OpenAI adapter whose upstream is an in-process script."""

    def __init__(self, responses=None, *, gate: asyncio.Event | None = None) -> None:
        super().__init__()
        self.calls: list[dict] = []
        self._responses = list(responses or [])
        self._gate = gate

    async def invoke(self, capability, provider, payload, attachment=None, *, deployment_id=None):
        self.calls.append(
            {
                "capability": capability,
                "provider": provider.name,
                "payload": payload,
                "deployment_id": deployment_id,
            }
        )
        if self._gate is not None:
            await self._gate.wait()
        if self._responses:
            item = self._responses.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        body = json.dumps({"id": f"call-{len(self.calls)}"}).encode()
        return AdapterResult(body=body)


class _RecordingAzure(AzureOpenAIAdapter):
    def __init__(self) -> None:
        super().__init__()
        self.deployments: list[str | None] = []

    async def invoke(self, capability, provider, payload, attachment=None, *, deployment_id=None):
        self.deployments.append(deployment_id)
        return AdapterResult(body=json.dumps({"deployment": deployment_id}).encode())


class _SpyCache(InMemoryCacheStore):
    def __init__(self) -> None:
        super().__init__()
        self.gets = 0
        self.sets = 0

    async def get(self, key):
        self.gets += 1
        return await super().get(key)

    async def set(self, key, entry, *, ttl_s=None):
        self.sets += 1
        return await super().set(key, entry, ttl_s=ttl_s)


class _BrokenCache(InMemoryCacheStore):
    async def get(self, key):
        raise ConnectionError("cache down")

    async def set(self, key, entry, *, ttl_s=None):
        raise ConnectionError("cache down")


def _request(payload=None, **kwargs) -> CapabilityRequest:
    return CapabilityRequest(
        capability=kwargs.pop("capability", "chat_completion"),
        provider_name=kwargs.pop("provider_name", "openai"),
        payload=CHAT if payload is None else payload,
        **kwargs,
    )


def _dispatcher(adapter=None, cache=None, **kwargs) -> Dispatcher:
    adapters = {"OpenAI": adapter or _RecordingOpenAI()}
    adapters.update(kwargs.pop("extra_adapters", {}))
    return Dispatcher(CONFIG, adapters=adapters, cache=cache, **kwargs)


def test_first_call_misses_and_second_hits():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        dispatcher = _dispatcher(adapter, InMemoryCacheStore())

        first = await dispatcher.dispatch(_request())
        assert first.ok and not first.served_from_cache
        await dispatcher.flush()

        second = await dispatcher.dispatch(_request())
        assert second.ok and second.served_from_cache
        assert second.body == first.body
        assert len(adapter.calls) == 1

    run_async(scenario())


def test_no_cache_skips_lookup_but_refreshes_entry():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        cache = _SpyCache()
        dispatcher = _dispatcher(adapter, cache)

        await dispatcher.dispatch(_request())
        await dispatcher.flush()
        bypass = await dispatcher.dispatch(_request(cache_control="no-cache"))
        await dispatcher.flush()
        assert bypass.ok and not bypass.served_from_cache
        assert len(adapter.calls) == 2
        assert cache.gets == 1
        assert cache.sets == 2

        hit = await dispatcher.dispatch(_request())
        assert hit.served_from_cache
        assert json.loads(hit.body) == {"id": "call-2"}

    run_async(scenario())


def test_upstream_failure_is_not_cached():
    async def scenario() -> None:
        adapter = _RecordingOpenAI(
            [ProviderAdapterError("rate limited", status=429)],
        )
        cache = _SpyCache()
        dispatcher = _dispatcher(adapter, cache)

        failed = await dispatcher.dispatch(_request())
        await dispatcher.flush()
        assert not failed.ok
        assert failed.kind == "upstream_error"
        assert failed.provider_status == 429
        assert failed.message == "rate limited"
        assert cache.sets == 0

        retried = await dispatcher.dispatch(_request())
        assert retried.ok and not retried.served_from_cache
        assert len(adapter.calls) == 2

    run_async(scenario())


def test_unreachable_upstream_has_no_status():
    async def scenario() -> None:
        adapter = _RecordingOpenAI([ProviderAdapterError("OpenAI is unreachable")])
        result = await _dispatcher(adapter).dispatch(_request())
        assert not result.ok
        assert result.kind == "upstream_error"
        assert result.provider_status is None

    run_async(scenario())


def test_invalid_payload_fails_before_any_io():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        cache = _SpyCache()
        dispatcher = _dispatcher(adapter, cache)

        result = await dispatcher.dispatch(_request({"model": "gpt-4", "messages": []}))
        assert not result.ok
        assert result.kind == "validation_error"
        assert "messages" in result.message
        assert cache.gets == 0
        assert adapter.calls == []

    run_async(scenario())


def test_streaming_is_rejected():
    async def scenario() -> None:
        result = await _dispatcher().dispatch(_request({**CHAT, "stream": True}))
        assert not result.ok
        assert result.kind == "validation_error"

    run_async(scenario())


def test_unknown_provider():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        cache = _SpyCache()
        result = await _dispatcher(adapter, cache).dispatch(_request(provider_name="nope"))
        assert not result.ok
        assert result.kind == "unknown_provider"
        assert result.to_envelope()["source"] == "proxy"
        assert (cache.gets, cache.sets) == (0, 0)
        assert adapter.calls == []

    run_async(scenario())


def test_provider_without_adapter_is_unsupported():
    async def scenario() -> None:
        result = await _dispatcher().dispatch(_request(provider_name="replicate"))
        assert not result.ok
        assert result.kind == "unsupported_capability"

    run_async(scenario())


def test_capability_outside_adapter_is_unsupported():
    async def scenario() -> None:
        dispatcher = _dispatcher(extra_adapters={"Azure OpenAI Service": _RecordingAzure()})
        result = await dispatcher.dispatch(
            _request(
                {"prompt": "a cat"},
                capability="image_generation",
                provider_name="azure",
                deployment_id="dep",
            )
        )
        assert not result.ok
        assert result.kind == "unsupported_capability"

    run_async(scenario())


def test_binary_capability_requires_attachment():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        result = await _dispatcher(adapter).dispatch(
            _request({"model": "whisper-1"}, capability="audio_transcription")
        )
        assert not result.ok
        assert result.kind == "validation_error"
        assert adapter.calls == []

        ok = await _dispatcher(adapter).dispatch(
            _request(
                {"model": "whisper-1"},
                capability="audio_transcription",
                attachment=Attachment(data=b"RIFF", filename="a.wav"),
            )
        )
        assert ok.ok

    run_async(scenario())


def test_azure_requires_a_deployment():
    async def scenario() -> None:
        azure = _RecordingAzure()
        cache = _SpyCache()
        dispatcher = _dispatcher(cache=cache, extra_adapters={"Azure OpenAI Service": azure})
        payload = {"messages": [{"role": "user", "content": "hi"}]}

        missing = await dispatcher.dispatch(_request(payload, provider_name="azure"))
        assert not missing.ok
        assert missing.kind == "unsupported_capability"
        assert (cache.gets, cache.sets) == (0, 0)
        assert azure.deployments == []

        from_body = await dispatcher.dispatch(
            _request({**payload, "deploymentId": "body-dep"}, provider_name="azure")
        )
        from_header = await dispatcher.dispatch(
            _request(
                {**payload, "deploymentId": "body-dep"},
                provider_name="azure",
                deployment_id="header-dep",
            )
        )
        assert from_body.ok and from_header.ok
        assert azure.deployments == ["body-dep", "header-dep"]

    run_async(scenario())


def test_deployments_do_not_share_cache_entries():
    async def scenario() -> None:
        azure = _RecordingAzure()
        dispatcher = _dispatcher(
            cache=InMemoryCacheStore(),
            extra_adapters={"Azure OpenAI Service": azure},
        )
        payload = {"messages": [{"role": "user", "content": "hi"}]}

        await dispatcher.dispatch(_request(payload, provider_name="azure", deployment_id="a"))
        await dispatcher.flush()
        other = await dispatcher.dispatch(
            _request(payload, provider_name="azure", deployment_id="b")
        )
        assert other.ok and not other.served_from_cache
        assert azure.deployments == ["a", "b"]

    run_async(scenario())


def test_cache_failures_never_fail_the_request():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        dispatcher = _dispatcher(adapter, _BrokenCache())

        first = await dispatcher.dispatch(_request())
        await dispatcher.flush()
        second = await dispatcher.dispatch(_request())
        assert first.ok and second.ok
        assert not second.served_from_cache
        assert len(adapter.calls) == 2

    run_async(scenario())


def test_undecodable_cached_json_is_a_miss():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        cache = InMemoryCacheStore()
        dispatcher = _dispatcher(adapter, cache)
        key = dispatcher.plan(_request()).cache_key
        assert key is not None
        await cache.set(key, CacheEntry(value=b"{truncated"))

        result = await dispatcher.dispatch(_request())
        assert result.ok and not result.served_from_cache
        assert len(adapter.calls) == 1

    run_async(scenario())


def test_non_json_bodies_are_cached_verbatim():
    async def scenario() -> None:
        adapter = _RecordingOpenAI(
            [AdapterResult(body=b"hello world", content_type="text/plain")]
        )
        dispatcher = _dispatcher(adapter, InMemoryCacheStore())
        req = _request(
            {"model": "whisper-1", "response_format": "text"},
            capability="audio_transcription",
            attachment=Attachment(data=b"RIFF"),
        )
        await dispatcher.dispatch(req)
        await dispatcher.flush()
        hit = await dispatcher.dispatch(req)
        assert hit.served_from_cache
        assert hit.body == b"hello world"
        assert hit.content_type == "text/plain"

    run_async(scenario())


def test_unexpected_adapter_exception_is_internal_error():
    async def scenario() -> None:
        adapter = _RecordingOpenAI([KeyError("boom")])
        result = await _dispatcher(adapter).dispatch(_request())
        assert not result.ok
        assert result.kind == "internal_error"
        assert "boom" not in result.message

    run_async(scenario())


def test_concurrent_misses_each_go_upstream_by_default():
    async def scenario() -> None:
        gate = asyncio.Event()
        adapter = _RecordingOpenAI(gate=gate)
        dispatcher = _dispatcher(adapter, InMemoryCacheStore())

        pending = [asyncio.create_task(dispatcher.dispatch(_request())) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*pending)
        assert all(r.ok for r in results)
        assert len(adapter.calls) == 3

    run_async(scenario())


def test_coalescing_shares_one_upstream_call():
    async def scenario() -> None:
        gate = asyncio.Event()
        adapter = _RecordingOpenAI(gate=gate)
        dispatcher = _dispatcher(adapter, InMemoryCacheStore(), coalesce=True)

        pending = [asyncio.create_task(dispatcher.dispatch(_request())) for _ in range(3)]
        await asyncio.sleep(0.01)
        gate.set()
        results = await asyncio.gather(*pending)
        assert len(adapter.calls) == 1
        assert {r.body for r in results} == {results[0].body}
        await dispatcher.aclose()

    run_async(scenario())


def test_cancelled_leader_does_not_cancel_coalesced_followers():
    async def scenario() -> None:
        gate = asyncio.Event()
        adapter = _RecordingOpenAI(gate=gate)
        dispatcher = _dispatcher(adapter, InMemoryCacheStore(), coalesce=True)

        leader = asyncio.create_task(dispatcher.dispatch(_request()))
        await asyncio.sleep(0.01)
        follower = asyncio.create_task(dispatcher.dispatch(_request()))
        await asyncio.sleep(0.01)

        leader.cancel()
        gate.set()
        result = await follower
        assert result.ok
        assert len(adapter.calls) == 1
        with pytest.raises(asyncio.CancelledError):
            await leader
        await dispatcher.aclose()

    run_async(scenario())


def test_transcriptions_with_different_audio_do_not_share_entries():
    async def scenario() -> None:
        adapter = _RecordingOpenAI()
        cache = _SpyCache()
        dispatcher = _dispatcher(adapter, cache)

        def transcription(data: bytes) -> CapabilityRequest:
            return _request(
                {"model": "whisper-1"},
                capability="audio_transcription",
                attachment=Attachment(data=data, filename="clip.wav"),
            )

        first = await dispatcher.dispatch(transcription(b"one"))
        await dispatcher.flush()
        second = await dispatcher.dispatch(transcription(b"two"))
        await dispatcher.flush()
        assert first.ok and not first.served_from_cache
        assert second.ok and not second.served_from_cache
        assert len(adapter.calls) == 2
        assert cache.sets == 2

        again = await dispatcher.dispatch(transcription(b"one"))
        assert again.served_from_cache
        assert again.body == first.body
        assert len(adapter.calls) == 2

    run_async(scenario())


def test_adapters_resolve_from_registry_by_default():
    dispatcher = Dispatcher(CONFIG)
    plan = dispatcher.plan(_request())
    assert isinstance(plan.adapter, OpenAIAdapter)
    assert plan.cache_key is None
    assert plan.payload["model"] == "gpt-4"


def test_metrics_count_hits_misses_and_failures():
    class _Metrics:
        def __init__(self) -> None:
            self.counts: dict[str, int] = {}

        def incr(self, name: str, value: int = 1, *, tags=None) -> None:
            _ = tags
            self.counts[name] = self.counts.get(name, 0) + value

    async def scenario() -> None:
        metrics = _Metrics()
        adapter = _RecordingOpenAI([AdapterResult(body=b"{}"), ProviderAdapterError("x", status=500)])
        dispatcher = _dispatcher(adapter, InMemoryCacheStore(), metrics=metrics)

        await dispatcher.dispatch(_request())
        await dispatcher.flush()
        await dispatcher.dispatch(_request())
        await dispatcher.dispatch(_request(cache_control="no-cache"))
        await dispatcher.dispatch(_request(provider_name="nope"))

        assert metrics.counts["dispatch_cache_misses_total"] == 1
        assert metrics.counts["dispatch_cache_hits_total"] == 1
        assert metrics.counts["dispatch_upstream_success_total"] == 1
        assert metrics.counts["dispatch_failures_total"] == 2

    run_async(scenario())
