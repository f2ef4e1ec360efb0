"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: providers/openai.py.
"""

from __future__ import annotations

from ..config import ProviderConfig
from ..errors import ValidationError
from ..types import AdapterResult, Attachment, Capability, JSONObject
from . import schemas as payloads
from .base import HTTPProviderAdapter

OPENAI_BASE_URL = "https://api.openai.com/v1"

# capability -> (path, multipart file field or None for JSON bodies)
_ROUTES: dict[Capability, tuple[str, str | None]] = {
    "chat_completion": ("/chat/completions", None),
    "completion": ("/completions", None),
    "embeddings": ("/embeddings", None),
    "audio_transcription": ("/audio/transcriptions", "file"),
    "audio_translation": ("/audio/translations", "file"),
    "image_generation": ("/images/generations", None),
    "image_edit": ("/images/edits", "image"),
    "image_variation": ("/images/variations", "image"),
}


class OpenAIAdapter(HTTPProviderAdapter):
    """Adapter for the OpenAI REST API."""

    kind = "OpenAI"
    schemas = {
        "chat_completion": payloads.OpenAIChatCompletionArgs,
        "completion": payloads.OpenAICompletionArgs,
        "embeddings": payloads.OpenAIEmbeddingsArgs,
        "audio_transcription": payloads.OpenAIAudioTranscriptionArgs,
        "audio_translation": payloads.OpenAIAudioTranslationArgs,
        "image_generation": payloads.OpenAIImageGenerationArgs,
        "image_edit": payloads.OpenAIImageEditArgs,
        "image_variation": payloads.OpenAIImageVariationArgs,
    }

    def url_for(self, capability: Capability, provider: ProviderConfig) -> str:
        path, _ = _ROUTES[capability]
        return f"{provider.base_url or OPENAI_BASE_URL}{path}"

    async def invoke(
        self,
        capability: Capability,
        provider: ProviderConfig,
        payload: JSONObject,
        attachment: Attachment | None = None,
        *,
        deployment_id: str | None = None,
    ) -> AdapterResult:
        _ = deployment_id
        self.schema_for(capability)
        url = self.url_for(capability, provider)
        headers = {"Authorization": f"Bearer {provider.api_key}"}
        _, file_field = _ROUTES[capability]

        if file_field is None:
            return await self._post_json(url, headers=headers, body=payload)

        if attachment is None:
            raise ValidationError(f"Capability '{capability}' requires a file upload")
        return await self._post_multipart(
            url,
            headers=headers,
            fields=payload,
            file_field=file_field,
            attachment=attachment,
            default_content_type=(
                "text/plain" if capability.startswith("audio_") else "application/json"
            ),
        )
