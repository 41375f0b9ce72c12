"""Confidence policy and shared mapping helpers."""
import math
from typing import Any, Iterable, Optional, Union

from .models import CompressedField, FieldMapping, SelectOption

FieldRef = Union[CompressedField, FieldMapping, str]


def _field_opid(field: FieldRef) -> str:
    if isinstance(field, str):
        return field
    if isinstance(field, FieldMapping):
        return field.field_opid
    return field.opid


def round_confidence(value: float) -> float:
    """Clamp to [0, 1] and round to two decimals, halves up."""
    clamped = max(0.0, min(1.0, float(value)))
    return math.floor(clamped * 100 + 0.5) / 100


def create_empty_mapping(field: FieldRef, reason: str, **overrides: Any) -> FieldMapping:
    """Build the canonical "no answer" mapping for a field.

    Args:
        field: Compressed field, existing mapping, or a bare opid.
        reason: Explanation stored as the mapping's reasoning.
        **overrides: Extra mapping attributes. ``field_opid`` cannot be overridden.

    Returns:
        Mapping with value None and confidence 0 unless overridden.
    """
    overrides.pop("field_opid", None)
    data: dict[str, Any] = {"value": None, "confidence": 0.0, "reasoning": reason}
    data.update(overrides)
    return FieldMapping(field_opid=_field_opid(field), **data)


def is_fillable(mapping: FieldMapping, threshold: float) -> bool:
    """A mapping is applied only with a value at or above the threshold."""
    return mapping.value is not None and mapping.confidence >= threshold


def select_fillable(mappings: Iterable[FieldMapping], threshold: float) -> list[FieldMapping]:
    return [m for m in mappings if is_fillable(m, threshold)]


def resolve_option_value(value: str, options: Optional[list[SelectOption]]) -> Optional[str]:
    """Map a proposed select value onto an exact option value.

    Exact value wins, then a case-insensitive match on value or label.
    Returns None when no option matches.
    """
    if not options:
        return None
    for option in options:
        if option.value == value:
            return option.value
    wanted = value.strip().lower()
    for option in options:
        if option.value.strip().lower() == wanted:
            return option.value
        if option.label and option.label.strip().lower() == wanted:
            return option.value
    return None
