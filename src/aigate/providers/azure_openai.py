"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: providers/azure_openai.py.
"""

from __future__ import annotations

from urllib.parse import quote

from ..config import ProviderConfig
from ..errors import UnsupportedCapabilityError, ValidationError
from ..types import AdapterResult, Attachment, Capability, JSONObject
from . import schemas as payloads
from .base import HTTPProviderAdapter

CHAT_API_VERSION = "2023-08-01-preview"
AUDIO_API_VERSION = "2023-09-01-preview"

# capability -> (deployment-relative path, api-version, multipart file field)
_ROUTES: dict[Capability, tuple[str, str, str | None]] = {
    "chat_completion": ("chat/completions", CHAT_API_VERSION, None),
    "completion": ("completions", CHAT_API_VERSION, None),
    "embeddings": ("embeddings", CHAT_API_VERSION, None),
    "audio_transcription": ("audio/transcriptions", AUDIO_API_VERSION, "file"),
    "audio_translation": ("audio/translations", AUDIO_API_VERSION, "file"),
}


class AzureOpenAIAdapter(HTTPProviderAdapter):
    """
    Adapter for Azure OpenAI Service deployments.

    Every call targets one deployment, resolved by the dispatcher from the
    request header, the payload, or the provider's configured default.
    """

    kind = "Azure OpenAI Service"
    requires_deployment = True
    schemas = {
        "chat_completion": payloads.AzureChatCompletionArgs,
        "completion": payloads.AzureCompletionArgs,
        "embeddings": payloads.AzureEmbeddingsArgs,
        "audio_transcription": payloads.AzureAudioTranscriptionArgs,
        "audio_translation": payloads.AzureAudioTranslationArgs,
    }

    def url_for(
        self,
        capability: Capability,
        provider: ProviderConfig,
        deployment_id: str,
    ) -> str:
        path, api_version, _ = _ROUTES[capability]
        deployment = quote(deployment_id, safe="")
        return (
            f"{provider.base_url}/openai/deployments/{deployment}/{path}"
            f"?api-version={api_version}"
        )

    async def invoke(
        self,
        capability: Capability,
        provider: ProviderConfig,
        payload: JSONObject,
        attachment: Attachment | None = None,
        *,
        deployment_id: str | None = None,
    ) -> AdapterResult:
        self.schema_for(capability)
        if not deployment_id:
            raise UnsupportedCapabilityError(
                f"Provider '{provider.name}' requires an Azure deployment id"
            )
        url = self.url_for(capability, provider, deployment_id)
        headers = {"api-key": provider.api_key}
        _, _, file_field = _ROUTES[capability]

        if file_field is None:
            return await self._post_json(url, headers=headers, body=payload)

        if attachment is None:
            raise ValidationError(f"Capability '{capability}' requires a file upload")
        # Response may not be JSON.
        return await self._post_multipart(
            url,
            headers=headers,
            fields=payload,
            file_field=file_field,
            attachment=attachment,
            default_content_type="text/plain",
        )
