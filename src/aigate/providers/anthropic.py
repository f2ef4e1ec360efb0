"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: providers/anthropic.py.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..config import ProviderConfig
from ..types import AdapterResult, Attachment, Capability, JSONObject, JSONValue
from . import schemas as payloads
from .base import HTTPProviderAdapter

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"


def messages_to_prompt(messages: Iterable[Mapping[str, JSONValue]]) -> str:
    """Fold chat messages into the Human/Assistant completion prompt format."""
    turns = []
    for message in messages:
        role = "Human" if message.get("role") == "user" else "Assistant"
        turns.append(f"\n\n{role}: {message.get('content', '')}")
    return "".join(turns) + "\n\nAssistant:"


class AnthropicAdapter(HTTPProviderAdapter):
    """Adapter for the Anthropic text completion API."""

    kind = "Anthropic"
    schemas = {
        "completion": payloads.AnthropicCompletionArgs,
        "chat_completion": payloads.AnthropicChatCompletionArgs,
    }

    async def invoke(
        self,
        capability: Capability,
        provider: ProviderConfig,
        payload: JSONObject,
        attachment: Attachment | None = None,
        *,
        deployment_id: str | None = None,
    ) -> AdapterResult:
        _ = attachment
        _ = deployment_id
        self.schema_for(capability)

        body = dict(payload)
        if capability == "chat_completion":
            messages = body.pop("messages", [])
            body["prompt"] = messages_to_prompt(
                m for m in messages if isinstance(m, Mapping)
            )
        body["stream"] = False

        return await self._post_json(
            f"{provider.base_url or ANTHROPIC_BASE_URL}/v1/complete",
            headers={
                "anthropic-version": ANTHROPIC_VERSION,
                "x-api-key": provider.api_key,
            },
            body=body,
        )
