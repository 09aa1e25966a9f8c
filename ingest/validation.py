"""
Row sanitization.

Applies the cell sanitizer to every schema column of a mapped row and
collects per-column warnings, plus batch statistics in the same shape the
rest of the pipeline logs.
"""
import logging
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from ingest.models import ColumnDefinition
from ingest.sanitization import sanitize_cell
from ingest.types import RowWarning, SanitizeRowResult

logger = logging.getLogger(__name__)


def sanitize_row(raw_row: Mapping[str, Any], columns: Sequence[ColumnDefinition]) -> SanitizeRowResult:
    """
    Sanitizes one mapped row against the schema.

    Every schema column gets an entry in the output, even when the raw row
    has no value for it. Keys in raw_row that are not schema column ids are
    dropped.

    Args:
        raw_row: Record keyed by schema column id (see map_row)
        columns: Schema columns

    Returns:
        SanitizeRowResult with data, warning_count and warnings by column id
    """
    result = SanitizeRowResult()

    for column in columns:
        sanitized = sanitize_cell(raw_row.get(column.id), column.type)
        result.data[column.id] = sanitized.value

        if sanitized.warning:
            result.warning_count += 1
            result.warnings[column.id] = RowWarning(
                message=sanitized.warning_message
                or f'Value was modified during sanitization for column "{column.name}"',
                type=sanitized.warning_type or 'other',
            )

    return result


def sanitize_batch(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDefinition]
) -> Tuple[List[SanitizeRowResult], Dict[str, Any]]:
    """
    Sanitizes a batch of mapped rows.

    Args:
        rows: Records keyed by schema column id
        columns: Schema columns

    Returns:
        Tuple (results, stats):
        - results: One SanitizeRowResult per input row, same order
        - stats: rows_total, rows_with_warnings, warning_count, warnings_by_type
    """
    results: List[SanitizeRowResult] = []
    warnings_by_type: Dict[str, int] = {}
    rows_with_warnings = 0

    for idx, raw_row in enumerate(rows):
        row_result = sanitize_row(raw_row, columns)
        results.append(row_result)

        if row_result.warning_count:
            rows_with_warnings += 1
            for column_id, warning in row_result.warnings.items():
                warnings_by_type[warning.type] = warnings_by_type.get(warning.type, 0) + 1
                logger.debug(f"[VALIDATION] Row {idx + 1} column {column_id}: {warning.message}")

    stats = {
        'rows_total': len(rows),
        'rows_with_warnings': rows_with_warnings,
        'warning_count': sum(r.warning_count for r in results),
        'warnings_by_type': warnings_by_type,
    }

    logger.info(
        f"[VALIDATION] Batch sanitized: {stats['rows_total']} rows, "
        f"{stats['rows_with_warnings']} with warnings ({stats['warning_count']} total)"
    )
    if warnings_by_type:
        logger.info(f"[VALIDATION] Warnings by type: {warnings_by_type}")

    return results, stats
