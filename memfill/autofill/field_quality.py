"""Field quality scoring and purpose inference.

Both heuristics are ordered rule lists so the tie-break order is explicit:
the first matching rule wins.
"""
import re
from dataclasses import dataclass
from typing import Optional

from .models import FieldDescriptor, FieldPurpose

LABEL_WEIGHT: float = 0.5
PURPOSE_WEIGHT: float = 0.3
CONTEXT_WEIGHT: float = 0.2

CRYPTIC_MIN_LENGTH: int = 8
SHORT_NAME_MAX_LENGTH: int = 12

_SHORT_READABLE = re.compile(r"^[a-z_-]+$", re.IGNORECASE)


@dataclass(frozen=True)
class CrypticRule:
    """Pattern for a machine-generated identifier."""
    name: str
    pattern: re.Pattern


CRYPTIC_RULES: tuple[CrypticRule, ...] = (
    CrypticRule("uuid", re.compile(
        r"\b[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}\b", re.IGNORECASE)),
    CrypticRule("bracketed_field", re.compile(r"\[[\w-]{8,}\]\[field\d+\]", re.IGNORECASE)),
    CrypticRule("numbered_field", re.compile(r"field_\d{8,}", re.IGNORECASE)),
    CrypticRule("long_hash", re.compile(r"\b[a-zA-Z0-9]{32,}\b")),
    CrypticRule("base64", re.compile(r"^[A-Za-z0-9+/]{20,}={0,2}$")),
    CrypticRule("prefixed_hex", re.compile(r"^(question|input|field|control)_[a-f0-9]{8,}$", re.IGNORECASE)),
)


@dataclass(frozen=True)
class PurposeRule:
    """Maps a keyword pattern (or an input type) to a field purpose."""
    purpose: FieldPurpose
    pattern: re.Pattern
    field_types: tuple[str, ...] = ()

    def matches(self, text: str, field_type: Optional[str] = None) -> bool:
        if field_type is not None and field_type in self.field_types:
            return True
        return bool(self.pattern.search(text))


PURPOSE_RULES: tuple[PurposeRule, ...] = (
    PurposeRule("email", re.compile(r"email|e-mail"), ("email",)),
    PurposeRule("phone", re.compile(r"phone|tel|mobile|cell"), ("tel",)),
    PurposeRule("company", re.compile(r"company|org|employer|business")),
    PurposeRule("title", re.compile(r"title|position|role|job")),
    PurposeRule("city", re.compile(r"city|town")),
    PurposeRule("state", re.compile(r"state|province|region")),
    PurposeRule("zip", re.compile(r"zip|postal|postcode")),
    PurposeRule("country", re.compile(r"country|nation")),
    PurposeRule("address", re.compile(r"address|street|addr")),
    PurposeRule("name", re.compile(r"name|fullname|first|last|given|family")),
)


def is_cryptic_string(value: Optional[str]) -> bool:
    """Check whether an attribute looks machine-generated."""
    if not value or len(value) < CRYPTIC_MIN_LENGTH:
        return False

    if len(value) < SHORT_NAME_MAX_LENGTH and _SHORT_READABLE.match(value):
        return False

    return any(rule.pattern.search(value) for rule in CRYPTIC_RULES)


def infer_purpose(text: str, field_type: Optional[str] = None) -> FieldPurpose:
    """Infer the semantic purpose of a field from its descriptive text.

    Args:
        text: Label, name, id, placeholder and aria text, in any case.
        field_type: Declared input type, if known.

    Returns:
        Purpose of the first matching rule, or "unknown".
    """
    lowered = text.lower()
    for rule in PURPOSE_RULES:
        if rule.matches(lowered, field_type):
            return rule.purpose
    return "unknown"


def descriptor_text(descriptor: FieldDescriptor) -> str:
    parts = [
        descriptor.label,
        descriptor.name,
        descriptor.id,
        descriptor.placeholder,
        descriptor.aria_label,
    ]
    return " ".join(p for p in parts if p)


def infer_field_purpose(descriptor: FieldDescriptor) -> FieldPurpose:
    return infer_purpose(descriptor_text(descriptor), descriptor.type)


def has_labels_without_placeholder(descriptor: FieldDescriptor) -> bool:
    return bool(
        descriptor.label
        or descriptor.aria_label
        or descriptor.label_top
        or descriptor.label_left
    )


def has_any_label(descriptor: FieldDescriptor) -> bool:
    return has_labels_without_placeholder(descriptor) or bool(descriptor.placeholder)


def get_primary_label(descriptor: FieldDescriptor) -> Optional[str]:
    return (
        descriptor.label
        or descriptor.aria_label
        or descriptor.label_top
        or descriptor.label_left
        or None
    )


def has_valid_context(descriptor: FieldDescriptor) -> bool:
    """True if placeholder, helper text, or a readable name/id is present."""
    return bool(
        descriptor.placeholder
        or descriptor.helper_text
        or (descriptor.name and not is_cryptic_string(descriptor.name))
        or (descriptor.id and not is_cryptic_string(descriptor.id))
    )


def score_field(descriptor: FieldDescriptor) -> float:
    """Score how usable a field is for matching.

    Args:
        descriptor: Raw field as extracted from the page.

    Returns:
        Score in [0, 1]. Fields identified only by generated name and id
        with no label always score 0.
    """
    has_labels = has_labels_without_placeholder(descriptor)

    score = 0.0
    if has_labels:
        score += LABEL_WEIGHT
    if infer_field_purpose(descriptor) != "unknown":
        score += PURPOSE_WEIGHT
    if has_valid_context(descriptor):
        score += CONTEXT_WEIGHT

    if (
        is_cryptic_string(descriptor.name)
        and is_cryptic_string(descriptor.id)
        and not has_labels
    ):
        return 0.0

    return min(round(score, 2), 1.0)
