"""Application configuration using pydantic-settings."""
import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AIConfig(BaseModel):
    """AI provider selection and matching policy."""

    selected_provider: Optional[str] = None
    selected_models: dict[str, str] = {}
    api_keys: dict[str, str] = {}
    confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    temperature: float = 0.3
    max_tokens: int = 4096

    def get_model(self, provider: str) -> Optional[str]:
        """Get the configured default model for a provider, if any."""
        return self.selected_models.get(provider) or None

    def get_api_key(self, provider: str) -> Optional[str]:
        """Resolve the API key for a provider.

        Keys in the settings file win over the conventional
        ``<PROVIDER>_API_KEY`` environment variable.
        """
        key = self.api_keys.get(provider)
        if key:
            return key
        return os.environ.get(f"{provider.upper()}_API_KEY") or None


class BrowserConfig(BaseModel):
    """Browser launch and page-interaction configuration."""

    headless: bool = False
    # "auto" picks the first installed browser, "bundled" uses Playwright's Chromium
    preferred_browser: Literal["auto", "chrome", "edge", "brave", "chromium", "bundled"] = "auto"
    executable_path: Optional[str] = None
    channel: Optional[str] = None
    persist_profile: bool = False
    user_data_dir: Optional[Path] = None
    settle_delay_ms: int = 2000
    timeout_ms: int = 30000
    viewport_width: int = 1440
    viewport_height: int = 900


class MatchingConfig(BaseModel):
    """Bounds on the working set sent to the matchers."""

    max_fields: int = 100
    max_memories: int = 50
    max_answer_chars: int = 500


class Settings(BaseSettings):
    """Application settings loaded from YAML or environment."""

    model_config = SettingsConfigDict(env_prefix="MEMFILL_", env_nested_delimiter="__")

    ai: AIConfig = AIConfig()
    browser: BrowserConfig = BrowserConfig()
    matching: MatchingConfig = MatchingConfig()

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from a YAML file.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            Settings instance with loaded configuration.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)
