"""Tests for the confidence policy helpers."""
import pytest

from memfill.autofill.mapping_utils import (
    create_empty_mapping,
    is_fillable,
    resolve_option_value,
    round_confidence,
    select_fillable,
)
from memfill.autofill.models import CompressedField, FieldMapping, SelectOption


class TestRoundConfidence:
    @pytest.mark.parametrize("value,expected", [
        (0.876, 0.88),
        (1.7, 1.0),
        (-0.2, 0.0),
        (0.5, 0.5),
        (0.125, 0.13),
        (0.625, 0.63),
    ])
    def test_clamped_and_rounded(self, value: float, expected: float) -> None:
        assert round_confidence(value) == expected

    def test_half_way_value_stays_fillable(self) -> None:
        mapping = FieldMapping(field_opid="#a", value="x", confidence=round_confidence(0.625))
        assert is_fillable(mapping, 0.63)


class TestCreateEmptyMapping:
    def test_from_compressed_field(self) -> None:
        field = CompressedField(opid="#email", highlight_index=0, type="email")
        mapping = create_empty_mapping(field, "No memories available")

        assert mapping.field_opid == "#email"
        assert mapping.value is None
        assert mapping.confidence == 0.0
        assert mapping.reasoning == "No memories available"

    def test_from_opid_with_overrides(self) -> None:
        mapping = create_empty_mapping("#x", "skipped", auto_fill=False)
        assert mapping.auto_fill is False

    def test_field_opid_not_overridable(self) -> None:
        existing = FieldMapping(field_opid="#a", value="v", confidence=0.9)
        mapping = create_empty_mapping(existing, "reset", field_opid="#other")
        assert mapping.field_opid == "#a"


class TestIsFillable:
    def test_at_threshold_is_fillable(self) -> None:
        assert is_fillable(FieldMapping(field_opid="#a", value="x", confidence=0.6), 0.6)

    def test_below_threshold(self) -> None:
        assert not is_fillable(FieldMapping(field_opid="#a", value="x", confidence=0.59), 0.6)

    def test_none_value_never_fillable(self) -> None:
        assert not is_fillable(FieldMapping(field_opid="#a", value=None, confidence=1.0), 0.0)

    def test_select_fillable_keeps_order(self) -> None:
        mappings = [
            FieldMapping(field_opid="#a", value="1", confidence=0.9),
            FieldMapping(field_opid="#b", value="2", confidence=0.3),
            FieldMapping(field_opid="#c", value="3", confidence=0.7),
        ]
        assert [m.field_opid for m in select_fillable(mappings, 0.6)] == ["#a", "#c"]


class TestResolveOptionValue:
    options = [
        SelectOption(value="US", label="United States"),
        SelectOption(value="CA", label="Canada"),
    ]

    def test_exact_value(self) -> None:
        assert resolve_option_value("CA", self.options) == "CA"

    def test_case_insensitive_value(self) -> None:
        assert resolve_option_value("us", self.options) == "US"

    def test_label_maps_to_value(self) -> None:
        assert resolve_option_value("united states", self.options) == "US"

    def test_no_match(self) -> None:
        assert resolve_option_value("Mexico", self.options) is None

    def test_no_options(self) -> None:
        assert resolve_option_value("US", None) is None
