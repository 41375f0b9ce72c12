"""Autofill data models, enums, and constants."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Matching
AI_MATCH_TEMPERATURE: float = 0.3
MIN_AI_MATCH_CONFIDENCE: float = 0.5
DEFAULT_CONFIDENCE_THRESHOLD: float = 0.6

# Fill execution
TRUTHY_CHECKBOX_VALUES: tuple[str, ...] = ("true", "yes", "1", "on")

FieldType = Literal[
    "text", "email", "tel", "url", "textarea",
    "select", "checkbox", "date", "number", "password",
]

FieldPurpose = Literal[
    "name", "email", "phone", "address", "city",
    "state", "zip", "country", "company", "title", "unknown",
]

WebsiteType = Literal[
    "job_portal", "social", "e-commerce", "blog", "forum", "news",
    "corporate", "portfolio", "dating", "rental", "survey", "unknown",
]

TEXT_LIKE_TYPES: tuple[str, ...] = ("text", "email", "tel", "url", "textarea", "date", "number")


class WireModel(BaseModel):
    """Base for models that cross a boundary with camelCase names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SelectOption(WireModel):
    """One option of a select field."""

    value: str
    label: Optional[str] = None


class FieldDescriptor(WireModel):
    """A raw, page-detected form input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    opid: str
    highlight_index: Optional[int] = None
    type: FieldType = "text"
    label: Optional[str] = None
    aria_label: Optional[str] = None
    label_top: Optional[str] = None
    label_left: Optional[str] = None
    placeholder: Optional[str] = None
    helper_text: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None
    required: bool = False
    current_value: str = ""
    options: Optional[list[SelectOption]] = None


class CompressedField(WireModel):
    """Matcher-friendly projection of a FieldDescriptor."""

    opid: str
    highlight_index: Optional[int]
    type: FieldType
    purpose: FieldPurpose = "unknown"
    labels: list[str] = []
    context: str = ""
    options: Optional[list[SelectOption]] = None


class CompressedMemory(WireModel):
    """Memory stripped down to what the prompt needs."""

    id: str
    question: str = ""
    answer: str
    category: str


class PageMetadata(WireModel):
    """Page-level metadata reported by the extractor."""

    title: str = ""
    description: Optional[str] = None
    url: str = ""


class WebsiteContext(WireModel):
    """Page context used for disambiguation, never matched against."""

    metadata: PageMetadata
    website_type: WebsiteType = "unknown"
    form_purpose: str = "unknown"


class ExtractedForm(WireModel):
    """Structured extraction result requested from the page session."""

    page_title: str = ""
    page_url: str = ""
    page_description: Optional[str] = None
    form_purpose: str = "unknown"
    website_type: WebsiteType = "unknown"
    fields: list[FieldDescriptor] = []


class FieldMapping(WireModel):
    """Matcher output for a single field."""

    field_opid: str
    value: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    auto_fill: Optional[bool] = None


class AutofillResult(WireModel):
    """Terminal outcome of one autofill run."""

    success: bool
    mappings: list[FieldMapping] = []
    error: Optional[str] = None
    error_kind: Optional[str] = None
    processing_time: Optional[float] = None
    filled_fields: list[str] = []


class ProgressState(Enum):
    """Orchestration states of an autofill run."""
    IDLE = "idle"
    DETECTING = "detecting"
    ANALYZING = "analyzing"
    MATCHING = "matching"
    FILLING = "filling"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class AutofillProgress:
    """Progress event emitted during a run."""
    state: ProgressState
    message: str
    fields_detected: Optional[int] = None
    fields_matched: Optional[int] = None
    fields_filled: Optional[int] = None
    error: Optional[str] = None


@dataclass
class FilterReasons:
    no_quality: int = 0
    duplicate: int = 0
    unknown_unlabeled: int = 0


@dataclass
class FilterStats:
    """Field filtering counters, kept for logging only."""
    total: int = 0
    filtered: int = 0
    reasons: FilterReasons = field(default_factory=FilterReasons)
