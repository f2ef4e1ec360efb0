from __future__ import annotations

import pytest

from aigate.errors import ValidationError
from aigate.fingerprint import KEY_PREFIX, canonical_json, fingerprint
from aigate.types import Attachment, CapabilityRequest


def _chat(payload, **kwargs) -> CapabilityRequest:
    return CapabilityRequest(
        capability=kwargs.pop("capability", "chat_completion"),
        provider_name=kwargs.pop("provider_name", "openai"),
        payload=payload,
        **kwargs,
    )


def test_key_is_independent_of_payload_key_order():
    a = _chat({"model": "gpt-4", "messages": [{"role": "user", "content": "hi"}]})
    b = _chat({"messages": [{"content": "hi", "role": "user"}], "model": "gpt-4"})
    assert fingerprint(a) == fingerprint(b)
    assert fingerprint(a).startswith(KEY_PREFIX)


def test_integral_floats_match_ints():
    assert canonical_json({"n": 1.0}) == canonical_json({"n": 1})
    assert canonical_json({"t": 0.5}) == '{"t":0.5}'


def test_list_order_is_significant():
    a = _chat({"input": ["a", "b"]}, capability="embeddings")
    b = _chat({"input": ["b", "a"]}, capability="embeddings")
    assert fingerprint(a) != fingerprint(b)


def test_provider_capability_and_deployment_separate_keys():
    payload = {"model": "m", "prompt": "p"}
    base = _chat(payload, capability="completion")
    keys = {
        fingerprint(base),
        fingerprint(_chat(payload, capability="completion", provider_name="other")),
        fingerprint(_chat(payload, capability="chat_completion")),
        fingerprint(_chat(payload, capability="completion", deployment_id="d1")),
        fingerprint(_chat(payload, capability="completion", deployment_id="d2")),
    }
    assert len(keys) == 5


def test_cache_control_does_not_change_key():
    payload = {"model": "m", "prompt": "p"}
    assert fingerprint(_chat(payload)) == fingerprint(
        _chat(payload, cache_control="no-cache")
    )


def test_attachment_bytes_are_part_of_key():
    payload = {"model": "whisper-1"}
    one = _chat(
        payload,
        capability="audio_transcription",
        attachment=Attachment(data=b"one", filename="a.wav"),
    )
    renamed = _chat(
        payload,
        capability="audio_transcription",
        attachment=Attachment(data=b"one", filename="b.wav"),
    )
    two = _chat(
        payload,
        capability="audio_transcription",
        attachment=Attachment(data=b"two", filename="a.wav"),
    )
    assert fingerprint(one) == fingerprint(renamed)
    assert fingerprint(one) != fingerprint(two)


def test_parts_cannot_be_shifted_between_fields():
    a = _chat({}, provider_name="ab", deployment_id="c")
    b = _chat({}, provider_name="a", deployment_id="bc")
    assert fingerprint(a) != fingerprint(b)


def test_non_finite_numbers_are_rejected():
    with pytest.raises(ValidationError, match="finite"):
        fingerprint(_chat({"temperature": float("nan")}))


def test_non_json_values_are_rejected():
    with pytest.raises(ValidationError, match="non-JSON"):
        canonical_json({"x": object()})
