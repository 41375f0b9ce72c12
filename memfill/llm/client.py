"""Structured-output LLM clients."""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, TypeVar

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from ..core.errors import ConfigurationError, LLMProviderError
from .providers import PROVIDER_REGISTRY, get_provider_config

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

DEFAULT_MAX_TOKENS: int = 4096


def _validate(schema: type[SchemaT], data: Any) -> SchemaT:
    try:
        if isinstance(data, str):
            return schema.model_validate_json(data)
        return schema.model_validate(data)
    except ValidationError as e:
        raise LLMProviderError(f"Response does not match {schema.__name__}: {e}") from e


def _strip_code_fence(content: str) -> str:
    """Remove a markdown code fence some models wrap JSON in."""
    content = content.strip()
    if "```" in content:
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
        content = content.strip()
    return content


class StructuredLLMClient(ABC):
    """A model call that must return an instance of a pydantic schema."""

    def __init__(self, provider: str, model: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> None:
        self.provider = provider
        self.model = model
        self.max_tokens = max_tokens

    @abstractmethod
    async def generate_structured(
        self,
        system_prompt: str,
        prompt: str,
        schema: type[SchemaT],
        schema_name: str,
        temperature: float = 0.3,
        schema_description: str = "",
    ) -> SchemaT:
        """Run one model call constrained to ``schema``.

        Raises:
            LLMProviderError: On transport, provider, or schema failure.
        """


class AnthropicStructuredClient(StructuredLLMClient):
    """Claude client forcing a single tool call whose input is the schema."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Optional[AsyncAnthropic] = None,
    ) -> None:
        super().__init__("anthropic", model, max_tokens)
        self._client = client or AsyncAnthropic(api_key=api_key)

    async def generate_structured(
        self,
        system_prompt: str,
        prompt: str,
        schema: type[SchemaT],
        schema_name: str,
        temperature: float = 0.3,
        schema_description: str = "",
    ) -> SchemaT:
        tool = {
            "name": schema_name,
            "description": schema_description or f"Return {schema_name}",
            "input_schema": schema.model_json_schema(by_alias=True),
        }
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
                tools=[tool],
                tool_choice={"type": "tool", "name": schema_name},
            )
        except Exception as e:
            raise LLMProviderError(f"Anthropic request failed: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "tool_use":
                logger.debug(f"Anthropic structured response: {block.input}")
                return _validate(schema, block.input)

        raise LLMProviderError("Anthropic response contained no structured output")


class OpenAICompatibleClient(StructuredLLMClient):
    """Client for OpenAI and providers exposing the OpenAI chat API."""

    def __init__(
        self,
        provider: str,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        super().__init__(provider, model, max_tokens)
        # The SDK refuses an empty key even for local servers
        self._client = client or AsyncOpenAI(api_key=api_key or "not-needed", base_url=base_url)

    async def generate_structured(
        self,
        system_prompt: str,
        prompt: str,
        schema: type[SchemaT],
        schema_name: str,
        temperature: float = 0.3,
        schema_description: str = "",
    ) -> SchemaT:
        schema_json = json.dumps(schema.model_json_schema(by_alias=True))
        system = (
            f"{system_prompt}\n\nYou MUST respond with valid JSON only, no markdown, "
            f"matching this {schema_name} schema: {schema_json}"
        )
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
            )
        except Exception as e:
            raise LLMProviderError(f"{self.provider} request failed: {e}") from e

        if not response.choices:
            raise LLMProviderError(f"{self.provider} returned no choices")

        content = response.choices[0].message.content or ""
        logger.debug(f"{self.provider} structured response: {content}")
        return _validate(schema, _strip_code_fence(content))


def create_llm_client(
    provider: str,
    api_key: Optional[str],
    model: Optional[str] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> StructuredLLMClient:
    """Create a structured-output client for a registered provider.

    Args:
        provider: Provider id from the registry.
        api_key: Provider key. For ollama a value starting with http is
            used as the server base URL instead.
        model: Model name, defaults to the provider's default.
        max_tokens: Response token limit.

    Raises:
        ConfigurationError: If the provider is unknown.
    """
    if provider not in PROVIDER_REGISTRY:
        raise ConfigurationError(
            f"Unsupported AI provider: {provider}. "
            f"Supported providers: {', '.join(PROVIDER_REGISTRY)}"
        )

    config = get_provider_config(provider)
    model_name = model or config.default_model

    if provider == "anthropic":
        return AnthropicStructuredClient(api_key or "", model_name, max_tokens)

    base_url = config.base_url
    if provider == "ollama" and api_key and api_key.startswith("http"):
        base_url = api_key.rstrip("/")
        if not base_url.endswith("/v1"):
            base_url = f"{base_url}/v1"
        api_key = None

    return OpenAICompatibleClient(provider, api_key, model_name, base_url, max_tokens)
