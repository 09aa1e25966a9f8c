"""
Column matching.

Normalizes header names and matches file columns to schema columns in three
tiers: exact name, alias dictionary, fuzzy (Levenshtein similarity via
rapidfuzz). Produces ColumnMapping proposals the user can override.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from core.config import ImportConfig, get_config
from ingest.errors import MatchValidationError
from ingest.models import ColumnDefinition, ColumnMapping, NewColumnDefinition
from ingest.types import ColumnMatch

logger = logging.getLogger(__name__)

EXACT_CONFIDENCE = 1.0
ALIAS_CONFIDENCE = 0.9
MANUAL_CONFIDENCE = 1.0

NEW_COLUMN_KEY_PREFIX = "__new__"

_TIER_RANK = {'exact': 0, 'alias': 1, 'fuzzy': 2}


def normalize_column_name(col_name: str) -> str:
    """
    Normalizes a column name for comparison: lowercase, only [a-z0-9] kept.

    Args:
        col_name: Original column name

    Returns:
        Normalized name (idempotent)
    """
    if not col_name:
        return ""
    return re.sub(r'[^a-z0-9]', '', str(col_name).lower())


def calculate_similarity(str1: str, str2: str) -> float:
    """
    Similarity between two strings in [0, 1]: 1 - levenshtein / max_len.

    Identical strings (including two empty ones) give 1; exactly one empty gives 0.
    """
    if str1 == str2:
        return 1.0
    if not str1 or not str2:
        return 0.0
    return Levenshtein.normalized_similarity(str1, str2)


def build_alias_groups(config: ImportConfig) -> List[set]:
    """Normalized alias groups, one set per canonical name."""
    groups = []
    for key, aliases in config.column_aliases.items():
        group = {normalize_column_name(key)}
        group.update(normalize_column_name(alias) for alias in aliases)
        group.discard("")
        groups.append(group)
    return groups


def check_alias_match(
    file_column_name: str,
    schema_column_name: str,
    config: Optional[ImportConfig] = None,
    alias_groups: Optional[Sequence[set]] = None
) -> bool:
    """
    True when both names belong to the same alias group (e.g. "Qty" / "Quantity").

    Args:
        file_column_name: Header from the file
        schema_column_name: Schema column display name
        config: Configuration override (alias dictionary)
        alias_groups: Prebuilt groups from build_alias_groups (built from config when None)
    """
    normalized_file = normalize_column_name(file_column_name)
    normalized_schema = normalize_column_name(schema_column_name)
    if not normalized_file or not normalized_schema:
        return False

    if alias_groups is None:
        alias_groups = build_alias_groups(config or get_config())
    for group in alias_groups:
        if normalized_file in group and normalized_schema in group:
            return True
    return False


def _classify_match(
    file_column_name: str,
    schema_column: ColumnDefinition,
    threshold: float,
    alias_groups: Sequence[set]
) -> Optional[ColumnMatch]:
    normalized_file = normalize_column_name(file_column_name)
    normalized_schema = normalize_column_name(schema_column.name)

    if normalized_file == normalized_schema:
        return ColumnMatch(schema_column=schema_column, confidence=EXACT_CONFIDENCE, match_type='exact')

    if check_alias_match(file_column_name, schema_column.name, alias_groups=alias_groups):
        return ColumnMatch(schema_column=schema_column, confidence=ALIAS_CONFIDENCE, match_type='alias')

    similarity = calculate_similarity(normalized_file, normalized_schema)
    if similarity > threshold:
        return ColumnMatch(schema_column=schema_column, confidence=similarity, match_type='fuzzy')
    return None


def find_best_match(
    file_column_name: str,
    schema_columns: Sequence[ColumnDefinition],
    config: Optional[ImportConfig] = None,
    alias_groups: Optional[Sequence[set]] = None
) -> Optional[ColumnMatch]:
    """
    Finds the best schema column for a file header.

    Any exact match beats any alias match, which beats any fuzzy match.
    Within a tier the highest confidence wins; ties keep the first-listed
    schema column.

    Args:
        file_column_name: Header from the file
        schema_columns: Candidate schema columns
        config: Configuration override
        alias_groups: Prebuilt alias groups (built from config when None)

    Returns:
        ColumnMatch, or None when nothing clears the fuzzy threshold
    """
    config = config or get_config()
    if alias_groups is None:
        alias_groups = build_alias_groups(config)
    best: Optional[ColumnMatch] = None

    for schema_column in schema_columns:
        match = _classify_match(file_column_name, schema_column, config.fuzzy_match_threshold, alias_groups)
        if match is None:
            continue
        if best is None:
            best = match
            continue
        rank, best_rank = _TIER_RANK[match.match_type], _TIER_RANK[best.match_type]
        if rank < best_rank or (rank == best_rank and match.confidence > best.confidence):
            best = match

    return best


def get_all_matches(
    file_column_name: str,
    schema_columns: Sequence[ColumnDefinition],
    threshold: Optional[float] = None,
    config: Optional[ImportConfig] = None
) -> List[ColumnMatch]:
    """
    All plausible schema columns for a header, best first (for manual override).

    Args:
        file_column_name: Header from the file
        schema_columns: Candidate schema columns
        threshold: Min fuzzy similarity (config.suggestion_threshold when None)
        config: Configuration override

    Returns:
        Matches sorted by confidence descending (stable for equal confidence)
    """
    config = config or get_config()
    if threshold is None:
        threshold = config.suggestion_threshold
    alias_groups = build_alias_groups(config)

    matches = []
    for schema_column in schema_columns:
        match = _classify_match(file_column_name, schema_column, threshold, alias_groups)
        if match is not None:
            matches.append(match)

    return sorted(matches, key=lambda m: m.confidence, reverse=True)


def _unmatched_mapping(index: int, file_column_name: str) -> ColumnMapping:
    return ColumnMapping(
        file_column_index=index,
        file_column_name=file_column_name,
        schema_column_id=None,
        new_column=None,
        skip=True,
        confidence=0.0,
        match_type='none',
    )


def auto_match_columns(
    file_headers: Sequence[str],
    schema_columns: Sequence[ColumnDefinition],
    config: Optional[ImportConfig] = None
) -> List[ColumnMapping]:
    """
    Proposes a mapping for every file header.

    Greedy, first come first served: each header picks its best match among
    the schema columns not yet claimed by an earlier header.

    Args:
        file_headers: Header labels in file order
        schema_columns: Target schema
        config: Configuration override

    Returns:
        One ColumnMapping per header (unmatched headers are skipped)
    """
    config = config or get_config()
    mappings: List[ColumnMapping] = []
    alias_groups = build_alias_groups(config)
    used_schema_columns = set()

    for i, file_column_name in enumerate(file_headers):
        available = [col for col in schema_columns if col.id not in used_schema_columns]
        match = find_best_match(file_column_name, available, config, alias_groups)

        if match:
            used_schema_columns.add(match.schema_column.id)
            mappings.append(ColumnMapping(
                file_column_index=i,
                file_column_name=file_column_name,
                schema_column_id=match.schema_column.id,
                new_column=None,
                skip=False,
                confidence=match.confidence,
                match_type=match.match_type,
            ))
            logger.debug(
                f"[MATCHER] '{file_column_name}' -> '{match.schema_column.name}' "
                f"({match.match_type}, confidence={match.confidence:.2f})"
            )
        else:
            mappings.append(_unmatched_mapping(i, file_column_name))
            logger.debug(f"[MATCHER] '{file_column_name}' has no match, skipped")

    matched = sum(1 for m in mappings if not m.skip)
    logger.info(f"[MATCHER] Auto-matched {matched}/{len(file_headers)} columns")
    return mappings


def apply_manual_mapping(
    mappings: List[ColumnMapping],
    file_column_index: int,
    schema_column_id: Optional[str] = None,
    new_column: Optional[NewColumnDefinition] = None,
    skip: bool = False
) -> List[ColumnMapping]:
    """
    Applies a user override to one file column.

    Pointing a column at a schema column releases that schema column from any
    other mapping that had claimed it, so no schema column is mapped twice.

    Args:
        mappings: Current mappings
        file_column_index: File column being overridden
        schema_column_id: Target schema column (None with new_column or skip)
        new_column: Proposal for a new schema column
        skip: Ignore this file column

    Returns:
        New list of mappings (inputs are not mutated)

    Raises:
        ValueError: Unknown file column or more than one target given
    """
    targets = sum([schema_column_id is not None, new_column is not None, skip])
    if targets != 1:
        raise ValueError("Exactly one of schema_column_id, new_column or skip must be given")

    if not any(m.file_column_index == file_column_index for m in mappings):
        raise ValueError(f"No mapping for file column index {file_column_index}")

    updated: List[ColumnMapping] = []
    for mapping in mappings:
        if mapping.file_column_index == file_column_index:
            if skip:
                updated.append(mapping.model_copy(update={
                    'schema_column_id': None, 'new_column': None, 'skip': True,
                    'confidence': 0.0, 'match_type': 'none',
                }))
            else:
                updated.append(mapping.model_copy(update={
                    'schema_column_id': schema_column_id, 'new_column': new_column, 'skip': False,
                    'confidence': MANUAL_CONFIDENCE, 'match_type': 'manual',
                }))
        elif schema_column_id is not None and mapping.schema_column_id == schema_column_id:
            logger.info(
                f"[MATCHER] Column '{mapping.file_column_name}' released from schema column {schema_column_id}"
            )
            updated.append(_unmatched_mapping(mapping.file_column_index, mapping.file_column_name))
        else:
            updated.append(mapping)

    return updated


def validate_mappings(
    mappings: Sequence[ColumnMapping],
    schema_columns: Sequence[ColumnDefinition]
) -> Tuple[bool, List[ColumnDefinition]]:
    """
    Checks that every required schema column has a non-skipped mapping.

    Returns:
        Tuple (valid, missing_columns)
    """
    mapped_column_ids = {
        m.schema_column_id
        for m in mappings
        if not m.skip and m.schema_column_id
    }
    missing_columns = [
        col for col in schema_columns
        if col.required and col.id not in mapped_column_ids
    ]
    return len(missing_columns) == 0, missing_columns


def require_valid_mappings(
    mappings: Sequence[ColumnMapping],
    schema_columns: Sequence[ColumnDefinition]
) -> None:
    """
    Raises:
        MatchValidationError: If a required schema column is not mapped
    """
    valid, missing_columns = validate_mappings(mappings, schema_columns)
    if not valid:
        logger.warning(f"[MATCHER] Missing required columns: {[c.name for c in missing_columns]}")
        raise MatchValidationError(missing_columns)


def map_row(row: Sequence[Any], mappings: Sequence[ColumnMapping]) -> Dict[str, Any]:
    """
    Turns a positional data row into a record keyed by schema column id.

    New-column mappings are keyed "__new__<n>" in the order they appear;
    skipped mappings and missing cells are left out.
    """
    record: Dict[str, Any] = {}
    new_column_count = 0

    for mapping in mappings:
        if mapping.skip:
            continue
        if mapping.schema_column_id:
            key = mapping.schema_column_id
        elif mapping.new_column is not None:
            key = f"{NEW_COLUMN_KEY_PREFIX}{new_column_count}"
            new_column_count += 1
        else:
            continue

        if mapping.file_column_index < len(row):
            record[key] = row[mapping.file_column_index]

    return record
