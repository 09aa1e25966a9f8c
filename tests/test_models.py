"""
Unit tests for schema/mapping models and cell classification.
"""
from datetime import date, datetime

import pytest
from pydantic import ValidationError

from ingest.errors import FormatError, ImportPipelineError, MatchValidationError
from ingest.models import ColumnDefinition, ColumnMapping, NewColumnDefinition, validate_unique_ids
from ingest.types import Boolean, Date, Empty, Number, Text, cell_to_text, classify_cell, is_blank


class TestColumnDefinition:
    """Schema columns."""

    def test_from_camel_case_payload(self):
        column = ColumnDefinition.model_validate(
            {"id": "c1", "name": "Min Qty", "type": "number", "role": "minQuantity", "required": True}
        )
        assert column.role == "minQuantity"
        assert column.required is True
        assert column.order == 0

    def test_select_requires_options(self):
        with pytest.raises(ValidationError):
            ColumnDefinition(id="c1", name="Color", type="select")
        with pytest.raises(ValidationError):
            ColumnDefinition(id="c1", name="Color", type="select", options=[])

    def test_options_only_for_select(self):
        with pytest.raises(ValidationError):
            ColumnDefinition(id="c1", name="Name", type="text", options=["a"])

    def test_select_with_options(self):
        column = ColumnDefinition(id="c1", name="Color", type="select", options=["Red", "Blue"])
        assert column.options == ["Red", "Blue"]

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            ColumnDefinition(id="c1", name="Name", type="blob")

    def test_unique_ids(self):
        columns = [
            ColumnDefinition(id="c1", name="A", type="text"),
            ColumnDefinition(id="c2", name="B", type="text"),
        ]
        validate_unique_ids(columns)
        with pytest.raises(ValueError, match="Duplicate schema column id: c1"):
            validate_unique_ids(columns + [ColumnDefinition(id="c1", name="C", type="text")])


class TestColumnMapping:
    """Mappings and new-column proposals."""

    def test_defaults(self):
        mapping = ColumnMapping(file_column_index=0, file_column_name="qty")
        assert mapping.skip is False
        assert mapping.confidence == 0.0
        assert mapping.match_type == "none"

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            ColumnMapping(file_column_index=0, file_column_name="qty", confidence=1.5)

    def test_negative_index(self):
        with pytest.raises(ValidationError):
            ColumnMapping(file_column_index=-1, file_column_name="qty")

    def test_payload_round_trip_keys(self):
        payload = ColumnMapping(
            file_column_index=2,
            file_column_name="Bin",
            new_column=NewColumnDefinition(name="Bin"),
            match_type="manual",
            confidence=1.0,
        ).to_payload()

        assert payload["fileColumnIndex"] == 2
        assert payload["newColumn"]["name"] == "Bin"
        assert payload["matchType"] == "manual"
        assert ColumnMapping.model_validate(payload).new_column.name == "Bin"

    def test_new_column_name_normalized(self):
        assert NewColumnDefinition(name="  Bin   Location ").name == "Bin Location"

    def test_new_column_name_blank(self):
        with pytest.raises(ValidationError):
            NewColumnDefinition(name="   ")


class TestClassifyCell:
    """Tagged cell union."""

    def test_variants(self):
        assert classify_cell(None) == Empty()
        assert classify_cell("x") == Text("x")
        assert classify_cell(5) == Number(5)
        assert classify_cell(2.5) == Number(2.5)
        assert classify_cell(True) == Boolean(True)
        assert classify_cell(date(2024, 1, 15)) == Date(date(2024, 1, 15))

    def test_bool_is_not_a_number(self):
        assert isinstance(classify_cell(False), Boolean)

    def test_nested_values_become_json_text(self):
        assert classify_cell({"a": 1}) == Text('{"a": 1}')
        assert classify_cell([1, 2]) == Text('[1, 2]')

    def test_already_classified(self):
        cell = Text("x")
        assert classify_cell(cell) is cell

    def test_cell_to_text(self):
        assert cell_to_text(Empty()) == ""
        assert cell_to_text(Number(3.0)) == "3"
        assert cell_to_text(Boolean(False)) == "false"
        assert cell_to_text(Date(datetime(2024, 1, 15, 8, 0))) == "2024-01-15T08:00:00"

    def test_is_blank(self):
        assert is_blank(None)
        assert is_blank("  ")
        assert not is_blank(0)
        assert not is_blank("x")


class TestErrors:
    """Exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(FormatError, ImportPipelineError)
        assert issubclass(MatchValidationError, ImportPipelineError)
        assert issubclass(ImportPipelineError, ValueError)

    def test_match_validation_message(self):
        columns = [
            ColumnDefinition(id="c1", name="Name", type="text", required=True),
            ColumnDefinition(id="c2", name="Price", type="currency", required=True),
        ]
        error = MatchValidationError(columns)
        assert error.missing_columns == columns
        assert str(error) == 'Required columns are not mapped: "Name", "Price"'
