"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Pydantic payload schemas for each provider capability.

Unknown fields are dropped, matching what each upstream accepts.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..types import JSONObject

AudioResponseFormat = Literal["json", "text", "srt", "vtt", "verbose_json"]
ImageResponseFormat = Literal["url", "b64_json"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FunctionCall(_Payload):
    name: str
    arguments: Any


class ChatMessage(_Payload):
    role: Literal["system", "user", "assistant", "function", "tool"]
    content: str | list[dict[str, Any]] | None = None
    name: str | None = None
    function_call: FunctionCall | None = None
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None


class FunctionSpec(_Payload):
    name: str
    description: str | None = None
    parameters: dict[str, Any]


class _SamplingArgs(_Payload):
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stop: str | list[str] | None = None
    max_tokens: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, float] | None = None
    user: str | None = None


class AzureChatCompletionArgs(_SamplingArgs):
    messages: list[ChatMessage] = Field(min_length=1)
    functions: list[FunctionSpec] | None = None
    function_call: str | dict[str, Any] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | dict[str, Any] | None = None
    response_format: dict[str, Any] | None = None
    seed: int | None = None


class OpenAIChatCompletionArgs(AzureChatCompletionArgs):
    model: str


class AzureCompletionArgs(_SamplingArgs):
    prompt: str | list[str] | None = None
    suffix: str | None = None
    logprobs: int | None = None
    echo: bool | None = None
    best_of: int | None = None


class OpenAICompletionArgs(AzureCompletionArgs):
    model: str


class AzureEmbeddingsArgs(_Payload):
    input: str | list[str]
    user: str | None = None


class OpenAIEmbeddingsArgs(AzureEmbeddingsArgs):
    model: str
    encoding_format: Literal["float", "base64"] | None = None
    dimensions: int | None = None


class AzureAudioTranscriptionArgs(_Payload):
    prompt: str | None = None
    temperature: float | None = None
    response_format: AudioResponseFormat | None = None
    # ISO 639-1 code.
    language: str | None = Field(default=None, min_length=2, max_length=2)


class OpenAIAudioTranscriptionArgs(AzureAudioTranscriptionArgs):
    model: str


class AzureAudioTranslationArgs(_Payload):
    prompt: str | None = None
    temperature: float | None = None
    response_format: AudioResponseFormat | None = None


class OpenAIAudioTranslationArgs(AzureAudioTranslationArgs):
    model: str


class _ImageArgs(_Payload):
    model: str | None = None
    n: int | None = Field(default=None, ge=1, le=10)
    size: str | None = None
    response_format: ImageResponseFormat | None = None
    user: str | None = None


class OpenAIImageGenerationArgs(_ImageArgs):
    prompt: str = Field(min_length=1)
    quality: str | None = None
    style: str | None = None


class OpenAIImageEditArgs(_ImageArgs):
    prompt: str = Field(min_length=1)


class OpenAIImageVariationArgs(_ImageArgs):
    pass


class _AnthropicArgs(_Payload):
    model: str
    max_tokens_to_sample: int = 15
    stop_sequences: list[str] | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    metadata: dict[str, str] | None = None


class AnthropicCompletionArgs(_AnthropicArgs):
    prompt: str


class AnthropicMessage(_Payload):
    role: Literal["user", "assistant"]
    content: str


class AnthropicChatCompletionArgs(_AnthropicArgs):
    messages: list[AnthropicMessage] = Field(min_length=1)


def validate_payload(schema: type[BaseModel], payload: JSONObject) -> JSONObject:
    """Validate `payload` against `schema` and return the upstream body."""
    if payload.get("stream") is True:
        raise ValidationError("Streaming responses are not supported by this gateway")
    try:
        model = schema.model_validate(payload)
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(f"Invalid payload: {details}") from exc
    return model.model_dump(exclude_none=True)
