"""Field and memory compression for prompt-sized matching input."""
import logging
import re
from typing import Sequence

from ..memory.store import MemoryEntry
from .field_quality import (
    has_any_label,
    infer_field_purpose,
    score_field,
)
from .models import (
    CompressedField,
    CompressedMemory,
    ExtractedForm,
    FieldDescriptor,
    FilterStats,
    PageMetadata,
    WebsiteContext,
    WebsiteType,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# Checked against URL + title when the extractor could not classify the site
WEBSITE_TYPE_RULES: tuple[tuple[re.Pattern, WebsiteType], ...] = (
    (re.compile(r"job|career|greenhouse|lever\.co|workday|indeed|linkedin\.com/jobs|apply", re.I), "job_portal"),
    (re.compile(r"survey|typeform|questionnaire|forms\.gle|docs\.google\.com/forms", re.I), "survey"),
    (re.compile(r"checkout|cart|shop|store|order", re.I), "e-commerce"),
    (re.compile(r"rent|lease|apartment|tenant", re.I), "rental"),
    (re.compile(r"dating|match\.com|tinder|bumble", re.I), "dating"),
    (re.compile(r"forum|community|discuss", re.I), "forum"),
    (re.compile(r"news|press", re.I), "news"),
    (re.compile(r"blog", re.I), "blog"),
    (re.compile(r"portfolio", re.I), "portfolio"),
    (re.compile(r"facebook|twitter|x\.com|instagram|social", re.I), "social"),
)


def normalize_text(value: str) -> str:
    """Collapse runs of whitespace and trim."""
    return _WHITESPACE.sub(" ", value).strip()


def _collect_labels(descriptor: FieldDescriptor) -> list[str]:
    candidates = [
        descriptor.label,
        descriptor.aria_label,
        descriptor.label_top,
        descriptor.label_left,
        descriptor.placeholder,
    ]
    labels: list[str] = []
    for candidate in candidates:
        if not candidate:
            continue
        text = normalize_text(candidate)
        if text and text not in labels:
            labels.append(text)
    return labels


def _build_context(descriptor: FieldDescriptor) -> str:
    parts: list[str] = []
    if descriptor.name:
        parts.append(f"name={descriptor.name}")
    if descriptor.id:
        parts.append(f"id={descriptor.id}")
    if descriptor.helper_text:
        parts.append(normalize_text(descriptor.helper_text))
    return " | ".join(parts)


def compress_fields(
    descriptors: Sequence[FieldDescriptor],
    max_fields: int = 100,
) -> tuple[list[CompressedField], FilterStats]:
    """Compress raw descriptors and drop unusable ones.

    Password fields are dropped without being counted. Surviving fields
    are numbered with sequential highlight indices.

    Args:
        descriptors: Fields as extracted from the page.
        max_fields: Maximum number of descriptors considered.

    Returns:
        Tuple of (compressed fields, filter statistics).
    """
    stats = FilterStats()
    seen_opids: set[str] = set()
    compressed: list[CompressedField] = []

    candidates = [d for d in descriptors[:max_fields] if d.type != "password"]
    stats.total = len(candidates)

    for descriptor in candidates:
        if descriptor.opid in seen_opids:
            stats.reasons.duplicate += 1
            continue
        seen_opids.add(descriptor.opid)

        if score_field(descriptor) == 0:
            stats.reasons.no_quality += 1
            continue

        purpose = infer_field_purpose(descriptor)
        if purpose == "unknown" and not has_any_label(descriptor):
            stats.reasons.unknown_unlabeled += 1
            continue

        compressed.append(
            CompressedField(
                opid=descriptor.opid,
                highlight_index=len(compressed),
                type=descriptor.type,
                purpose=purpose,
                labels=_collect_labels(descriptor),
                context=_build_context(descriptor),
                options=list(descriptor.options) if descriptor.options else None,
            )
        )

    stats.filtered = stats.total - len(compressed)
    if stats.filtered:
        logger.info(
            f"Filtered {stats.filtered}/{stats.total} fields "
            f"(no_quality={stats.reasons.no_quality}, "
            f"duplicate={stats.reasons.duplicate}, "
            f"unknown_unlabeled={stats.reasons.unknown_unlabeled})"
        )
    return compressed, stats


def compress_memories(
    memories: Sequence[MemoryEntry],
    max_memories: int = 50,
    max_answer_chars: int = 500,
) -> list[CompressedMemory]:
    """Reduce the knowledge base to a bounded working set.

    Higher-confidence memories are kept first; ties keep store order.
    """
    ranked = sorted(memories, key=lambda m: m.confidence, reverse=True)
    seen: set[tuple[str, str]] = set()
    compressed: list[CompressedMemory] = []

    for memory in ranked:
        answer = normalize_text(memory.answer)
        if not answer:
            continue
        answer = answer[:max_answer_chars]
        question = normalize_text(memory.question or "")

        key = (question.lower(), answer.lower())
        if key in seen:
            continue
        seen.add(key)

        compressed.append(
            CompressedMemory(
                id=memory.id,
                question=question,
                answer=answer,
                category=memory.category,
            )
        )
        if len(compressed) >= max_memories:
            break

    if len(compressed) < len(memories):
        logger.debug(f"Compressed {len(memories)} memories to {len(compressed)}")
    return compressed


def infer_website_type(url: str, title: str) -> WebsiteType:
    haystack = f"{url} {title}"
    for pattern, website_type in WEBSITE_TYPE_RULES:
        if pattern.search(haystack):
            return website_type
    return "unknown"


def build_website_context(extracted: ExtractedForm) -> WebsiteContext:
    """Build the page context handed to the matcher."""
    website_type = extracted.website_type
    if website_type == "unknown":
        website_type = infer_website_type(extracted.page_url, extracted.page_title)

    return WebsiteContext(
        metadata=PageMetadata(
            title=extracted.page_title,
            description=extracted.page_description,
            url=extracted.page_url,
        ),
        website_type=website_type,
        form_purpose=extracted.form_purpose or "unknown",
    )
