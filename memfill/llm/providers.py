"""Registry of supported AI providers."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProviderConfig:
    """Static description of an AI provider."""
    id: str
    name: str
    default_model: str
    requires_api_key: bool = True
    key_prefix: str = ""
    base_url: Optional[str] = None


PROVIDER_REGISTRY: dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        id="openai",
        name="OpenAI",
        default_model="gpt-4o-mini",
        key_prefix="sk-",
    ),
    "anthropic": ProviderConfig(
        id="anthropic",
        name="Anthropic",
        default_model="claude-sonnet-4-20250514",
        key_prefix="sk-ant-",
    ),
    "groq": ProviderConfig(
        id="groq",
        name="Groq",
        default_model="llama-3.3-70b-versatile",
        key_prefix="gsk_",
        base_url="https://api.groq.com/openai/v1",
    ),
    "deepseek": ProviderConfig(
        id="deepseek",
        name="DeepSeek",
        default_model="deepseek-chat",
        key_prefix="sk-",
        base_url="https://api.deepseek.com",
    ),
    "gemini": ProviderConfig(
        id="gemini",
        name="Google Gemini",
        default_model="gemini-2.0-flash",
        key_prefix="AIza",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
    ),
    "ollama": ProviderConfig(
        id="ollama",
        name="Ollama (Local)",
        default_model="llama3.1",
        requires_api_key=False,
        base_url="http://localhost:11434/v1",
    ),
}

MIN_KEY_LENGTH: int = 20


def is_valid_provider(provider: str) -> bool:
    return provider in PROVIDER_REGISTRY


def get_provider_config(provider: str) -> ProviderConfig:
    """Look up a provider.

    Raises:
        KeyError: If the provider is not registered.
    """
    return PROVIDER_REGISTRY[provider]


def validate_provider_key(provider: str, key: Optional[str]) -> bool:
    """Check a key's shape. Providers without keys accept anything."""
    config = PROVIDER_REGISTRY[provider]
    if not config.requires_api_key:
        return True
    if not key or not key.strip():
        return False
    return key.startswith(config.key_prefix) and len(key) > MIN_KEY_LENGTH
