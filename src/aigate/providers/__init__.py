"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Provider adapter package exports and built-in adapter bootstrap.
"""

from .anthropic import AnthropicAdapter, messages_to_prompt
from .azure_openai import AzureOpenAIAdapter
from .base import HTTPProviderAdapter, form_fields
from .contracts import ProviderAdapter, ProviderAdapterError
from .openai import OpenAIAdapter
from .registry import (
    ProviderRegistryError,
    create_provider_adapter,
    list_provider_adapters,
    register_provider_adapter,
)
from .schemas import validate_payload

# Replicate and Co:here are accepted in configuration but have no adapter.
register_provider_adapter("OpenAI", OpenAIAdapter, overwrite=True)
register_provider_adapter("Azure OpenAI Service", AzureOpenAIAdapter, overwrite=True)
register_provider_adapter("Anthropic", AnthropicAdapter, overwrite=True)

__all__ = [
    "ProviderAdapter",
    "ProviderAdapterError",
    "HTTPProviderAdapter",
    "OpenAIAdapter",
    "AzureOpenAIAdapter",
    "AnthropicAdapter",
    "ProviderRegistryError",
    "register_provider_adapter",
    "create_provider_adapter",
    "list_provider_adapters",
    "validate_payload",
    "form_fields",
    "messages_to_prompt",
]
