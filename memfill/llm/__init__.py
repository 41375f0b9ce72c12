"""LLM provider registry and structured-output clients."""
from .client import (
    AnthropicStructuredClient,
    OpenAICompatibleClient,
    StructuredLLMClient,
    create_llm_client,
)
from .providers import PROVIDER_REGISTRY, ProviderConfig, get_provider_config, validate_provider_key

__all__ = [
    "StructuredLLMClient",
    "AnthropicStructuredClient",
    "OpenAICompatibleClient",
    "create_llm_client",
    "PROVIDER_REGISTRY",
    "ProviderConfig",
    "get_provider_config",
    "validate_provider_key",
]
