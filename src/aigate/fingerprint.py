"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Deterministic cache-key derivation for capability requests.
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any

from .errors import ValidationError
from .types import CapabilityRequest

KEY_PREFIX = "aigate:v1:"


def _normalize(value: Any) -> Any:
    """Fold values that serialize differently but mean the same thing."""
    if isinstance(value, bool) or value is None or isinstance(value, (str, int)):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValidationError("Payload numbers must be finite")
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    raise ValidationError(
        f"Payload contains a non-JSON value of type {type(value).__name__}"
    )


def canonical_json(value: Any) -> str:
    """Serialize `value` with sorted keys and fixed separators."""
    return json.dumps(
        _normalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        allow_nan=False,
    )


def attachment_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def fingerprint(req: CapabilityRequest) -> str:
    """
    Build the cache key for one request.

    Material is provider name, capability, canonical payload and deployment id,
    plus the SHA-256 of any attachment bytes. Each part is length-prefixed so
    that no two distinct part tuples concatenate to the same material.
    """
    parts = [
        req.provider_name,
        req.capability,
        canonical_json(req.payload),
        req.deployment_id or "",
        attachment_digest(req.attachment.data) if req.attachment is not None else "",
    ]
    material = "".join(f"{len(part)}:{part}|" for part in parts)
    return KEY_PREFIX + hashlib.sha256(material.encode("utf-8")).hexdigest()
