"""Tests for the rule-based fallback matcher."""
import pytest

from memfill.autofill.compressor import compress_fields, compress_memories
from memfill.autofill.fallback_matcher import (
    MAX_FALLBACK_CONFIDENCE,
    FallbackMatcher,
    resolve_select_answer,
    tokenize,
)
from memfill.autofill.models import CompressedField, FieldDescriptor, SelectOption


@pytest.fixture
def matcher() -> FallbackMatcher:
    return FallbackMatcher()


@pytest.fixture
def compressed_memories(memories):
    return compress_memories(memories)


def _compress(*descriptors: FieldDescriptor) -> list[CompressedField]:
    fields, _ = compress_fields(list(descriptors))
    return fields


class TestTokenize:
    def test_stopwords_removed(self) -> None:
        assert tokenize("What is your email address?") == {"email", "address"}

    def test_camel_case_split(self) -> None:
        assert tokenize("firstName") == {"first", "name"}


class TestResolveSelectAnswer:
    def test_acronym_maps_to_option(self) -> None:
        options = [SelectOption(value="US"), SelectOption(value="CA")]
        assert resolve_select_answer("United States", options) == "US"

    def test_label_match(self) -> None:
        options = [SelectOption(value="de", label="Germany"), SelectOption(value="fr", label="France")]
        assert resolve_select_answer("germany", options) == "de"

    def test_word_containment(self) -> None:
        options = [SelectOption(value="senior", label="Senior"), SelectOption(value="junior", label="Junior")]
        assert resolve_select_answer("Senior engineer", options) == "senior"

    def test_placeholder_option_never_chosen(self) -> None:
        options = [SelectOption(value="", label="Choose one"), SelectOption(value="CA")]
        assert resolve_select_answer("Choose one", options) is None

    def test_no_match(self) -> None:
        options = [SelectOption(value="US"), SelectOption(value="CA")]
        assert resolve_select_answer("Germany", options) is None


class TestFallbackMatcher:
    @pytest.mark.asyncio
    async def test_contact_form(self, matcher, contact_fields, compressed_memories) -> None:
        fields, _ = compress_fields(contact_fields)
        mappings = await matcher.match_fields(fields, compressed_memories)

        by_opid = {m.field_opid: m for m in mappings}
        assert [m.field_opid for m in mappings] == ["#full_name", "#email", "#country"]
        assert by_opid["#full_name"].value == "Jane Doe"
        assert by_opid["#email"].value == "jane.doe@example.com"
        assert by_opid["#country"].value == "US"
        assert all(m.confidence <= MAX_FALLBACK_CONFIDENCE for m in mappings)

    @pytest.mark.asyncio
    async def test_reasoning_names_memory(self, matcher, contact_fields, compressed_memories) -> None:
        fields, _ = compress_fields(contact_fields)
        mappings = await matcher.match_fields(fields, compressed_memories)
        assert mappings[1].reasoning.startswith("Rule-based match on memory 'Email address'")

    @pytest.mark.asyncio
    async def test_no_match_is_empty(self, matcher, compressed_memories) -> None:
        fields = _compress(FieldDescriptor(opid="#color", label="Favourite colour"))
        mappings = await matcher.match_fields(fields, compressed_memories)

        assert mappings[0].value is None
        assert mappings[0].confidence == 0.0
        assert mappings[0].reasoning == "No matching memory found by rules"

    @pytest.mark.asyncio
    async def test_type_incompatible_memory_ignored(self, matcher, compressed_memories) -> None:
        # email and phone memories exist, but only digits qualify for a tel field
        fields = _compress(FieldDescriptor(opid="#phone", type="tel", label="Phone"))
        mappings = await matcher.match_fields(fields, compressed_memories)
        assert mappings[0].value == "+1 555 010 2030"

    @pytest.mark.asyncio
    async def test_first_name_derived(self, matcher, compressed_memories) -> None:
        fields = _compress(
            FieldDescriptor(opid="#first", label="First name", name="first_name")
        )
        mappings = await matcher.match_fields(fields, compressed_memories)

        assert mappings[0].value == "Jane"
        assert mappings[0].confidence == 0.72

    @pytest.mark.asyncio
    async def test_last_name_derived(self, matcher, compressed_memories) -> None:
        fields = _compress(FieldDescriptor(opid="#last", label="Last name"))
        mappings = await matcher.match_fields(fields, compressed_memories)
        assert mappings[0].value == "Doe"

    @pytest.mark.asyncio
    async def test_checkbox_yes_becomes_true(self, matcher, compressed_memories) -> None:
        fields = _compress(FieldDescriptor(opid="#news", type="checkbox", label="Newsletter"))
        mappings = await matcher.match_fields(fields, compressed_memories)
        assert mappings[0].value == "true"

    @pytest.mark.asyncio
    async def test_password_never_matched(self, matcher, compressed_memories) -> None:
        field = CompressedField(opid="#pw", highlight_index=0, type="password", labels=["Full name"])
        mappings = await matcher.match_fields([field], compressed_memories)

        assert mappings[0].value is None
        assert mappings[0].reasoning == "Password fields are never filled"

    @pytest.mark.asyncio
    async def test_no_memories(self, matcher, contact_fields) -> None:
        fields, _ = compress_fields(contact_fields)
        mappings = await matcher.match_fields(fields, [])

        assert len(mappings) == 3
        assert all(m.value is None for m in mappings)

    @pytest.mark.asyncio
    async def test_no_fields(self, matcher, compressed_memories) -> None:
        assert await matcher.match_fields([], compressed_memories) == []
