"""Error taxonomy for the autofill pipeline."""
from typing import Literal

ErrorKind = Literal["configuration", "empty_input", "matching", "fill", "aborted", "internal"]


class AutofillError(Exception):
    """Base class for all autofill errors."""

    error_kind: ErrorKind = "internal"


class ConfigurationError(AutofillError):
    """No provider selected, unknown provider, or a missing API key."""

    error_kind: ErrorKind = "configuration"


class EmptyInputError(AutofillError):
    """No memories stored or no usable fields on the page."""

    error_kind: ErrorKind = "empty_input"


class MatchingFailure(AutofillError):
    """The AI matching step failed. Recovered by the fallback matcher."""

    error_kind: ErrorKind = "matching"


class LLMProviderError(MatchingFailure):
    """A provider call failed or returned output that violates the schema."""


class FillActionFailure(AutofillError):
    """A single fill command failed. The field is skipped."""

    error_kind: ErrorKind = "fill"

    def __init__(self, field_opid: str, message: str) -> None:
        super().__init__(f"Failed to fill [{field_opid}]: {message}")
        self.field_opid = field_opid


class AbortedByUser(AutofillError):
    """The run was stopped by an explicit stop() call."""

    error_kind: ErrorKind = "aborted"

    def __init__(self, message: str = "Autofill stopped by user") -> None:
        super().__init__(message)
