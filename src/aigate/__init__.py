"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

aigate: a caching reverse proxy for generative-AI providers.
"""

from __future__ import annotations

from .cache import (
    CacheStore,
    CacheStoreError,
    InMemoryCacheStore,
    RedisCacheStore,
    create_cache_store,
)
from .config import (
    AuthSettings,
    CacheSettings,
    GatewayConfig,
    ProviderConfig,
    RateLimitSettings,
    load_config,
    parse_config,
)
from .dispatcher import Dispatcher
from .errors import (
    CacheUnavailableError,
    ConfigurationError,
    GatewayError,
    InternalError,
    UnknownProviderError,
    UnsupportedCapabilityError,
    UpstreamError,
    ValidationError,
)
from .fingerprint import canonical_json, fingerprint
from .metrics import DispatchMetrics, NoOpDispatchMetrics, PrometheusDispatchMetrics
from .providers import (
    AnthropicAdapter,
    AzureOpenAIAdapter,
    OpenAIAdapter,
    ProviderAdapter,
    ProviderAdapterError,
    create_provider_adapter,
    list_provider_adapters,
    register_provider_adapter,
)
from .types import (
    AdapterResult,
    Attachment,
    CacheEntry,
    Capability,
    CapabilityRequest,
    DispatchFailure,
    DispatchResult,
    DispatchSuccess,
    ProviderKind,
)

__version__ = "0.1.0"

__all__ = [
    "Dispatcher",
    "CapabilityRequest",
    "Attachment",
    "Capability",
    "ProviderKind",
    "CacheEntry",
    "AdapterResult",
    "DispatchResult",
    "DispatchSuccess",
    "DispatchFailure",
    "fingerprint",
    "canonical_json",
    "DispatchMetrics",
    "NoOpDispatchMetrics",
    "PrometheusDispatchMetrics",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "CacheStoreError",
    "create_cache_store",
    "GatewayConfig",
    "ProviderConfig",
    "CacheSettings",
    "AuthSettings",
    "RateLimitSettings",
    "load_config",
    "parse_config",
    "ProviderAdapter",
    "ProviderAdapterError",
    "OpenAIAdapter",
    "AzureOpenAIAdapter",
    "AnthropicAdapter",
    "register_provider_adapter",
    "create_provider_adapter",
    "list_provider_adapters",
    "GatewayError",
    "ValidationError",
    "UnknownProviderError",
    "UnsupportedCapabilityError",
    "UpstreamError",
    "CacheUnavailableError",
    "InternalError",
    "ConfigurationError",
]
