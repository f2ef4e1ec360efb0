"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Provider adapter contracts consumed by the dispatcher.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel

from ..config import ProviderConfig
from ..types import AdapterResult, Attachment, Capability, JSONObject, ProviderKind


class ProviderAdapterError(RuntimeError):
    """
    Structured failure of one upstream call.

    `status` is the upstream HTTP status when one was received, `None` when the
    provider was unreachable.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: bytes | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.body = body


class ProviderAdapter(Protocol):
    """Adapter executing capabilities against one provider kind."""

    kind: ProviderKind
    capabilities: frozenset[Capability]
    requires_deployment: bool

    def schema_for(self, capability: Capability) -> type[BaseModel]: ...

    async def invoke(
        self,
        capability: Capability,
        provider: ProviderConfig,
        payload: JSONObject,
        attachment: Attachment | None = None,
        *,
        deployment_id: str | None = None,
    ) -> AdapterResult: ...

    async def aclose(self) -> None: ...
