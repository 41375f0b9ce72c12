"""AI-powered field-to-memory matching."""
import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from pydantic import Field

from ..core.errors import MatchingFailure
from ..llm.client import StructuredLLMClient
from .mapping_utils import create_empty_mapping, resolve_option_value, round_confidence
from .models import (
    AI_MATCH_TEMPERATURE,
    CompressedField,
    CompressedMemory,
    FieldMapping,
    WebsiteContext,
    WireModel,
)
from .prompts import SYSTEM_PROMPT, build_match_prompt

logger = logging.getLogger(__name__)

SCHEMA_NAME = "FieldMemoryMatches"
SCHEMA_DESCRIPTION = (
    "Mapping of form fields to stored memory entries based on semantic similarity"
)


class AIMatch(WireModel):
    """One field match as returned by the model."""

    highlight_index: int = Field(description="The highlight index [N] of the field being matched")
    value: Optional[str] = Field(
        description=(
            "The answer to fill into the field, taken from, combined from, or derived "
            "from memories. Null if no suitable answer is found. For select fields, "
            "MUST be an exact option value."
        ),
    )
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score for this match (0-1)")
    reasoning: str = Field(description="Why this memory was selected or rejected")


class AIBatchMatch(WireModel):
    """Full structured response of a matching call."""

    matches: list[AIMatch] = Field(description="Array of field-to-memory matches")
    reasoning: Optional[str] = Field(
        default=None, description="Overall reasoning about the matching strategy used"
    )


@dataclass
class MatchOutcome:
    """Result of the AI step: mappings on success, the error otherwise."""
    mappings: Optional[list[FieldMapping]] = None
    error: Optional[MatchingFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.mappings is not None


class AIMatcher:
    """Matches compressed fields to memories with a structured LLM call."""

    def __init__(
        self,
        client: StructuredLLMClient,
        temperature: float = AI_MATCH_TEMPERATURE,
    ) -> None:
        self._client = client
        self._temperature = temperature

    async def match_fields(
        self,
        fields: Sequence[CompressedField],
        memories: Sequence[CompressedMemory],
        context: WebsiteContext,
    ) -> list[FieldMapping]:
        """Match every field to the best memory-derived value.

        Args:
            fields: Compressed fields of the current batch.
            memories: Compressed memories.
            context: Website context for disambiguation.

        Returns:
            Exactly one mapping per field, in field order.

        Raises:
            MatchingFailure: If the model call fails or violates the schema.
        """
        if not fields:
            logger.info("No fields to match")
            return []

        if not memories:
            logger.info("No memories available for matching")
            return [create_empty_mapping(f, "No memories available") for f in fields]

        start = time.perf_counter()
        result = await self._perform_matching(fields, memories, context)
        mappings = self._convert_results(result, fields)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"AI matching completed in {elapsed_ms:.2f}ms for {len(fields)} fields "
            f"({self._client.provider}/{self._client.model})"
        )
        return mappings

    async def try_match_fields(
        self,
        fields: Sequence[CompressedField],
        memories: Sequence[CompressedMemory],
        context: WebsiteContext,
    ) -> MatchOutcome:
        """Same as match_fields, but returns failures instead of raising."""
        try:
            return MatchOutcome(mappings=await self.match_fields(fields, memories, context))
        except MatchingFailure as e:
            return MatchOutcome(error=e)

    async def _perform_matching(
        self,
        fields: Sequence[CompressedField],
        memories: Sequence[CompressedMemory],
        context: WebsiteContext,
    ) -> AIBatchMatch:
        prompt = build_match_prompt(fields, memories, context)
        logger.info(f"AI matching with {self._client.provider} for {len(fields)} fields")

        try:
            return await self._client.generate_structured(
                system_prompt=SYSTEM_PROMPT,
                prompt=prompt,
                schema=AIBatchMatch,
                schema_name=SCHEMA_NAME,
                temperature=self._temperature,
                schema_description=SCHEMA_DESCRIPTION,
            )
        except MatchingFailure:
            raise
        except Exception as e:
            raise MatchingFailure(f"AI matching call failed: {e}") from e

    def _convert_results(
        self,
        result: AIBatchMatch,
        fields: Sequence[CompressedField],
    ) -> list[FieldMapping]:
        """Correlate model matches back to fields by highlight index."""
        field_by_index = {
            f.highlight_index: f for f in fields if f.highlight_index is not None
        }
        matched: dict[int, FieldMapping] = {}

        for item in result.matches:
            field = field_by_index.get(item.highlight_index)
            if field is None:
                logger.warning(
                    f"AI returned match for unknown highlight index: [{item.highlight_index}]"
                )
                continue
            if item.highlight_index in matched:
                logger.warning(f"AI returned duplicate match for [{item.highlight_index}]")
                continue
            matched[item.highlight_index] = self._to_mapping(item, field)

        mappings = []
        for field in fields:
            mapping = matched.get(field.highlight_index) if field.highlight_index is not None else None
            mappings.append(mapping or create_empty_mapping(field, "No match returned for field"))
        return mappings

    def _to_mapping(self, item: AIMatch, field: CompressedField) -> FieldMapping:
        reasoning = item.reasoning or "AI-powered semantic match and value generation."
        value = item.value

        if value is None or not value.strip():
            return create_empty_mapping(field, reasoning)

        if field.type == "select":
            option_value = resolve_option_value(value, field.options)
            if option_value is None:
                logger.warning(f"AI value for [{field.highlight_index}] is not a declared option")
                return create_empty_mapping(
                    field, f"Value {value!r} is not one of the field's options"
                )
            value = option_value

        return FieldMapping(
            field_opid=field.opid,
            value=value,
            confidence=round_confidence(item.confidence),
            reasoning=reasoning,
        )
