"""
Unit tests for column matching.
"""
import pytest

from core.config import ImportConfig
from ingest.errors import MatchValidationError
from ingest.models import ColumnDefinition, NewColumnDefinition
from ingest.normalization import (
    apply_manual_mapping,
    auto_match_columns,
    build_alias_groups,
    calculate_similarity,
    check_alias_match,
    find_best_match,
    get_all_matches,
    map_row,
    normalize_column_name,
    require_valid_mappings,
    validate_mappings,
)


def column(column_id, name, column_type="text", required=False):
    return ColumnDefinition(id=column_id, name=name, type=column_type, required=required)


class TestNormalizeColumnName:
    """Header name normalization."""

    def test_lowercase_and_strip_symbols(self):
        assert normalize_column_name("Product Name!") == "productname"
        assert normalize_column_name("Unit_Price ($)") == "unitprice"

    def test_digits_kept(self):
        assert normalize_column_name("Address Line 2") == "addressline2"

    def test_empty(self):
        assert normalize_column_name("") == ""
        assert normalize_column_name("---") == ""

    def test_idempotent(self):
        once = normalize_column_name("Min. Qty (units)")
        assert normalize_column_name(once) == once


class TestSimilarity:
    """Levenshtein similarity."""

    def test_identical(self):
        assert calculate_similarity("price", "price") == 1.0
        assert calculate_similarity("", "") == 1.0

    def test_one_empty(self):
        assert calculate_similarity("price", "") == 0.0
        assert calculate_similarity("", "price") == 0.0

    def test_normalized_distance(self):
        assert calculate_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_symmetric(self):
        assert calculate_similarity("quantity", "qty") == calculate_similarity("qty", "quantity")


class TestAliasMatch:
    """Alias dictionary lookup."""

    def test_alias_of_canonical(self, config):
        assert check_alias_match("Qty", "Quantity", config)

    def test_two_aliases_of_same_group(self, config):
        assert check_alias_match("qty", "Count", config)

    def test_unrelated(self, config):
        assert not check_alias_match("Qty", "Price", config)

    def test_empty_names(self, config):
        assert not check_alias_match("", "Quantity", config)

    def test_custom_aliases(self):
        config = ImportConfig(_env_file=None, column_aliases={'bin': ['slot']})
        assert check_alias_match("Slot", "Bin", config)
        assert not check_alias_match("Qty", "Quantity", config)

    def test_prebuilt_groups(self):
        config = ImportConfig(_env_file=None, column_aliases={'bin': ['Slot', 'Bin-Location']})
        groups = build_alias_groups(config)

        assert groups == [{"bin", "slot", "binlocation"}]
        assert check_alias_match("bin location", "Slot", alias_groups=groups)
        assert not check_alias_match("Qty", "Quantity", alias_groups=groups)


class TestFindBestMatch:
    """Tiered best-match selection."""

    def test_exact(self, schema_columns, config):
        match = find_best_match("price", schema_columns, config)
        assert match.schema_column.id == "c3"
        assert match.match_type == "exact"
        assert match.confidence == 1.0

    def test_alias(self, schema_columns, config):
        match = find_best_match("qty", schema_columns, config)
        assert match.schema_column.id == "c2"
        assert match.match_type == "alias"
        assert match.confidence == 0.9

    def test_fuzzy(self, schema_columns, config):
        match = find_best_match("Quantiy", schema_columns, config)
        assert match.schema_column.id == "c2"
        assert match.match_type == "fuzzy"
        assert match.confidence == pytest.approx(1 - 1 / 8)

    def test_no_match(self, schema_columns, config):
        assert find_best_match("zzzz", schema_columns, config) is None

    def test_exact_beats_alias(self, config):
        columns = [column("a", "Quantity"), column("b", "QTY")]
        assert find_best_match("qty", columns, config).schema_column.id == "b"

    def test_alias_beats_higher_fuzzy(self, config):
        # "purchaseprices" is 13/14 similar but only "Cost" is an alias
        columns = [column("a", "Purchase Prices"), column("b", "Cost")]
        match = find_best_match("purchase_price", columns, config)
        assert match.schema_column.id == "b"
        assert match.match_type == "alias"

    def test_tie_keeps_first_column(self, config):
        columns = [column("a", "Quantity"), column("b", "Count")]
        assert find_best_match("qty", columns, config).schema_column.id == "a"

    def test_threshold_from_config(self, schema_columns):
        strict = ImportConfig(_env_file=None, fuzzy_match_threshold=0.95)
        assert find_best_match("Quantiy", schema_columns, strict) is None


class TestGetAllMatches:
    """Suggestions for manual override."""

    def test_sorted_descending(self, schema_columns, config):
        matches = get_all_matches("Quantiy", schema_columns, threshold=0.0, config=config)
        assert matches[0].schema_column.id == "c2"
        confidences = [m.confidence for m in matches]
        assert confidences == sorted(confidences, reverse=True)

    def test_default_threshold_is_suggestion_threshold(self, config):
        # 0.4 similarity: below the auto-match threshold, above the suggestion one
        columns = [column("a", "abcde")]
        assert find_best_match("abxyz", columns, config) is None
        matches = get_all_matches("abxyz", columns, config=config)
        assert [m.schema_column.id for m in matches] == ["a"]

    def test_includes_exact_and_alias(self, schema_columns, config):
        matches = get_all_matches("qty", schema_columns, config=config)
        assert matches[0].schema_column.id == "c2"
        assert matches[0].match_type == "alias"


class TestAutoMatchColumns:
    """Greedy auto-matching."""

    def test_header_fixture(self, schema_columns, config):
        mappings = auto_match_columns(["name", "qty", "price"], schema_columns, config)

        assert [m.schema_column_id for m in mappings] == ["c1", "c2", "c3"]
        assert [m.match_type for m in mappings] == ["exact", "alias", "exact"]
        assert [m.confidence for m in mappings] == [1.0, 0.9, 1.0]
        assert [m.file_column_index for m in mappings] == [0, 1, 2]

    def test_first_come_first_served(self, config):
        columns = [column("a", "Quantity")]
        mappings = auto_match_columns(["qty", "quantity"], columns, config)

        assert mappings[0].schema_column_id == "a"
        assert mappings[1].skip is True
        assert mappings[1].schema_column_id is None

    def test_unmatched_header(self, schema_columns, config):
        mapping = auto_match_columns(["zzzz"], schema_columns, config)[0]

        assert mapping.skip is True
        assert mapping.match_type == "none"
        assert mapping.confidence == 0.0
        assert mapping.new_column is None

    def test_schema_column_never_assigned_twice(self, schema_columns, config):
        mappings = auto_match_columns(["Name", "name", "Title", "Product"], schema_columns, config)
        assigned = [m.schema_column_id for m in mappings if m.schema_column_id]
        assert len(assigned) == len(set(assigned))

    def test_empty_headers(self, schema_columns, config):
        assert auto_match_columns([], schema_columns, config) == []


class TestManualMapping:
    """User overrides."""

    @pytest.fixture
    def mappings(self, schema_columns, config):
        return auto_match_columns(["name", "qty", "price"], schema_columns, config)

    def test_point_to_schema_column_releases_previous_owner(self, mappings):
        updated = apply_manual_mapping(mappings, 1, schema_column_id="c3")

        assert updated[1].schema_column_id == "c3"
        assert updated[1].match_type == "manual"
        assert updated[1].confidence == 1.0
        assert updated[2].skip is True
        assert updated[2].schema_column_id is None
        assert updated[0] == mappings[0]

    def test_inputs_not_mutated(self, mappings):
        apply_manual_mapping(mappings, 1, schema_column_id="c3")
        assert mappings[1].schema_column_id == "c2"
        assert mappings[2].schema_column_id == "c3"

    def test_new_column(self, mappings):
        updated = apply_manual_mapping(mappings, 2, new_column=NewColumnDefinition(name="Notes"))

        assert updated[2].new_column.name == "Notes"
        assert updated[2].schema_column_id is None
        assert updated[2].skip is False

    def test_skip(self, mappings):
        updated = apply_manual_mapping(mappings, 0, skip=True)
        assert updated[0].skip is True
        assert updated[0].match_type == "none"

    def test_exactly_one_target(self, mappings):
        with pytest.raises(ValueError):
            apply_manual_mapping(mappings, 0)
        with pytest.raises(ValueError):
            apply_manual_mapping(mappings, 0, schema_column_id="c1", skip=True)

    def test_unknown_index(self, mappings):
        with pytest.raises(ValueError, match="No mapping"):
            apply_manual_mapping(mappings, 9, skip=True)


class TestValidateMappings:
    """Required-column validation."""

    def test_valid(self, schema_columns, config):
        mappings = auto_match_columns(["name", "qty"], schema_columns, config)
        assert validate_mappings(mappings, schema_columns) == (True, [])

    def test_required_column_skipped(self, schema_columns, config):
        mappings = auto_match_columns(["name", "qty"], schema_columns, config)
        mappings = apply_manual_mapping(mappings, 0, skip=True)

        valid, missing = validate_mappings(mappings, schema_columns)
        assert valid is False
        assert [c.id for c in missing] == ["c1"]

    def test_optional_columns_never_block(self, schema_columns, config):
        mappings = auto_match_columns(["name"], schema_columns, config)
        assert validate_mappings(mappings, schema_columns)[0] is True

    def test_require_valid_mappings_raises(self, schema_columns, config):
        mappings = auto_match_columns(["qty"], schema_columns, config)

        with pytest.raises(MatchValidationError) as exc_info:
            require_valid_mappings(mappings, schema_columns)
        assert [c.id for c in exc_info.value.missing_columns] == ["c1"]
        assert str(exc_info.value) == 'Required columns are not mapped: "Name"'


class TestMapRow:
    """Positional rows to records keyed by schema column id."""

    def test_map_row(self, schema_columns, config):
        mappings = auto_match_columns(["name", "qty", "notes", "junk"], schema_columns, config)
        mappings = apply_manual_mapping(mappings, 2, new_column=NewColumnDefinition(name="Notes"))

        record = map_row(["Widget", 5, "fragile", "x"], mappings)
        assert record == {"c1": "Widget", "c2": 5, "__new__0": "fragile"}

    def test_short_row(self, schema_columns, config):
        mappings = auto_match_columns(["name", "qty"], schema_columns, config)
        assert map_row(["Widget"], mappings) == {"c1": "Widget"}
