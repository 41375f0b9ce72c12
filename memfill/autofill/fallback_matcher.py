"""Deterministic rule-based matcher used when AI matching is unavailable."""
import logging
import re
from typing import Optional, Sequence

from .field_quality import infer_purpose
from .mapping_utils import create_empty_mapping, resolve_option_value, round_confidence
from .models import (
    CompressedField,
    CompressedMemory,
    FieldMapping,
    FieldPurpose,
    SelectOption,
)

logger = logging.getLogger(__name__)

PURPOSE_MATCH_WEIGHT: float = 0.5
OVERLAP_WEIGHT: float = 0.4
CATEGORY_WEIGHT: float = 0.1
MIN_FALLBACK_SCORE: float = 0.35
MAX_FALLBACK_CONFIDENCE: float = 0.9
DERIVED_VALUE_PENALTY: float = 0.9

PURPOSE_CATEGORIES: dict[str, str] = {
    "email": "contact",
    "phone": "contact",
    "address": "location",
    "city": "location",
    "state": "location",
    "zip": "location",
    "country": "location",
    "company": "work",
    "title": "work",
    "name": "personal",
}

STOPWORDS: frozenset[str] = frozenset({
    "a", "an", "and", "are", "do", "enter", "for", "here", "i", "id", "in", "is",
    "me", "my", "of", "or", "please", "the", "to", "type", "what", "which", "you", "your",
})

TRUTHY_ANSWERS: frozenset[str] = frozenset({"true", "yes", "y", "1", "on", "agree", "checked"})
FALSY_ANSWERS: frozenset[str] = frozenset({"false", "no", "n", "0", "off", "disagree", "unchecked"})

_TOKEN = re.compile(r"[a-z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_ATTR_PREFIX = re.compile(r"\b(name|id)=")
_URL_SHAPE = re.compile(r"^(https?://|www\.)\S+$|^[\w-]+(\.[\w-]+)+(/\S*)?$", re.IGNORECASE)
_FIRST_NAME = re.compile(r"first|given|fname", re.IGNORECASE)
_LAST_NAME = re.compile(r"last|family|surname|lname", re.IGNORECASE)


def tokenize(text: str) -> set[str]:
    """Lowercase content words, with camelCase split apart."""
    text = _CAMEL_BOUNDARY.sub(r"\1 \2", text).lower()
    return {t for t in _TOKEN.findall(text) if t not in STOPWORDS and len(t) > 1}


def _field_text(field: CompressedField) -> str:
    return " ".join(field.labels + [_ATTR_PREFIX.sub("", field.context)])


def _memory_purpose(memory: CompressedMemory) -> FieldPurpose:
    if memory.question:
        purpose = infer_purpose(memory.question)
        if purpose != "unknown":
            return purpose
    if "@" in memory.answer and " " not in memory.answer.strip():
        return "email"
    digits = sum(ch.isdigit() for ch in memory.answer)
    if digits >= 7 and digits >= len(memory.answer.replace(" ", "")) * 0.6:
        return "phone"
    return "unknown"


def _overlap(field_tokens: set[str], memory_tokens: set[str]) -> float:
    if not field_tokens or not memory_tokens:
        return 0.0
    return len(field_tokens & memory_tokens) / min(len(field_tokens), len(memory_tokens))


def _acronym(text: str) -> str:
    words = _TOKEN.findall(text.lower())
    return "".join(w[0] for w in words) if len(words) > 1 else ""


def resolve_select_answer(answer: str, options: Optional[list[SelectOption]]) -> Optional[str]:
    """Pick the option value that best represents a free-text answer.

    Tries exact value/label, then the answer's acronym ("United States" -> "US"),
    then whole-word containment either way. Options with an empty value are
    placeholders and never chosen.
    """
    options = [o for o in options or [] if o.value.strip()]
    if not options:
        return None

    exact = resolve_option_value(answer, options)
    if exact is not None:
        return exact

    acronym = _acronym(answer)
    if acronym:
        for option in options:
            if option.value.lower() == acronym or (option.label or "").lower() == acronym:
                return option.value

    answer_lower = answer.lower().strip()
    for option in options:
        for text in (option.label, option.value):
            if not text or len(text) < 3:
                continue
            text_lower = text.lower().strip()
            if re.search(rf"\b{re.escape(text_lower)}\b", answer_lower):
                return option.value
            if re.search(rf"\b{re.escape(answer_lower)}\b", text_lower):
                return option.value
    return None


def _is_type_compatible(field_type: str, answer: str) -> bool:
    if field_type == "email":
        return "@" in answer
    if field_type == "tel":
        return sum(ch.isdigit() for ch in answer) >= 7
    if field_type == "url":
        return bool(_URL_SHAPE.match(answer.strip()))
    if field_type == "number":
        try:
            float(answer.replace(",", "").strip())
        except ValueError:
            return False
        return True
    return True


class FallbackMatcher:
    """Keyword, purpose and category matching against memories.

    Produces the same output contract as the AI matcher without any
    network access, so it works with no provider configured.
    """

    async def match_fields(
        self,
        fields: Sequence[CompressedField],
        memories: Sequence[CompressedMemory],
    ) -> list[FieldMapping]:
        """Return exactly one mapping per field, in field order."""
        if not fields:
            return []
        if not memories:
            return [create_empty_mapping(f, "No memories available") for f in fields]

        indexed = [(m, tokenize(m.question), _memory_purpose(m)) for m in memories]
        mappings = [self._match_field(field, indexed) for field in fields]

        matched = sum(1 for m in mappings if m.value is not None)
        logger.info(f"Fallback matching found values for {matched}/{len(fields)} fields")
        return mappings

    def _match_field(
        self,
        field: CompressedField,
        indexed: list[tuple[CompressedMemory, set[str], FieldPurpose]],
    ) -> FieldMapping:
        if field.type == "password":
            return create_empty_mapping(field, "Password fields are never filled")

        field_tokens = tokenize(_field_text(field))
        best: Optional[tuple[float, str, CompressedMemory, bool]] = None

        for memory, memory_tokens, memory_purpose in indexed:
            score = self._score(field, field_tokens, memory, memory_tokens, memory_purpose)
            if score < MIN_FALLBACK_SCORE or (best is not None and score <= best[0]):
                continue

            value, derived = self._derive_value(field, memory.answer)
            if value is None:
                continue
            best = (score, value, memory, derived)

        if best is None:
            return create_empty_mapping(field, "No matching memory found by rules")

        score, value, memory, derived = best
        confidence = min(score, MAX_FALLBACK_CONFIDENCE)
        if derived:
            confidence *= DERIVED_VALUE_PENALTY

        source = memory.question or memory.answer[:30]
        return FieldMapping(
            field_opid=field.opid,
            value=value,
            confidence=round_confidence(confidence),
            reasoning=f"Rule-based match on memory '{source}' (score {score:.2f})",
        )

    def _score(
        self,
        field: CompressedField,
        field_tokens: set[str],
        memory: CompressedMemory,
        memory_tokens: set[str],
        memory_purpose: FieldPurpose,
    ) -> float:
        if not _is_type_compatible(field.type, memory.answer):
            return 0.0

        score = 0.0
        if field.purpose != "unknown" and field.purpose == memory_purpose:
            score += PURPOSE_MATCH_WEIGHT
        score += OVERLAP_WEIGHT * _overlap(field_tokens, memory_tokens)
        if PURPOSE_CATEGORIES.get(field.purpose) == memory.category:
            score += CATEGORY_WEIGHT
        return score

    def _derive_value(self, field: CompressedField, answer: str) -> tuple[Optional[str], bool]:
        """Shape a memory answer for the field. Returns (value, derived)."""
        if field.type == "select":
            return resolve_select_answer(answer, field.options), False

        if field.type == "checkbox":
            lowered = answer.strip().lower()
            if lowered in TRUTHY_ANSWERS:
                return "true", False
            if lowered in FALSY_ANSWERS:
                return "false", False
            return None, False

        if field.purpose == "name":
            words = answer.split()
            text = " ".join(field.labels) + " " + field.context
            if len(words) > 1 and _FIRST_NAME.search(text):
                return words[0], True
            if len(words) > 1 and _LAST_NAME.search(text):
                return words[-1], True

        return answer, False
