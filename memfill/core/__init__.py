"""Core utilities: configuration, errors and logging."""
from .config import AIConfig, BrowserConfig, MatchingConfig, Settings
from .errors import (
    AbortedByUser,
    AutofillError,
    ConfigurationError,
    EmptyInputError,
    FillActionFailure,
    LLMProviderError,
    MatchingFailure,
)
from .logging import setup_logging

__all__ = [
    "Settings",
    "AIConfig",
    "BrowserConfig",
    "MatchingConfig",
    "AutofillError",
    "ConfigurationError",
    "EmptyInputError",
    "MatchingFailure",
    "LLMProviderError",
    "FillActionFailure",
    "AbortedByUser",
    "setup_logging",
]
