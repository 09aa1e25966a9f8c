"""
Header Detector - Finds the row holding column labels.

Scores the first rows of a RawTable by header keywords, text/number type
contrast with the following row, and emptiness, so report titles and blank
lines above the real header are skipped.
"""
import logging
import re
from typing import Any, List, Optional, Sequence

from core.config import ImportConfig, get_config
from ingest.types import Date, Number, RawTable, cell_to_text, classify_cell, is_blank

logger = logging.getLogger(__name__)

TEXT_CELL_SCORE = 2
KEYWORD_SCORE = 5
TYPE_CONTRAST_BONUS = 3
TYPE_CONTRAST_MIN_COLUMNS = 2
SPARSE_ROW_PENALTY = 10
SPARSE_ROW_RATIO = 0.3
TITLE_ROW_PENALTY = 10

_NUMERIC_RE = re.compile(r'^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$')
_DATE_LIKE_RE = re.compile(r'^(?:\d{4}[-/]\d{1,2}[-/]\d{1,2}|\d{1,2}/\d{1,2}/\d{4})')


def _is_label_text(cell: Any) -> bool:
    """Non-blank string that does not read as a number."""
    if not isinstance(cell, str):
        return False
    text = cell.strip()
    return text != '' and not _NUMERIC_RE.match(text)


def _is_data_value(cell: Any) -> bool:
    """Number, date, or a string that reads as one."""
    typed = classify_cell(cell)
    if isinstance(typed, (Number, Date)):
        return True
    if isinstance(cell, str):
        text = cell.strip()
        return bool(text) and bool(_NUMERIC_RE.match(text) or _DATE_LIKE_RE.match(text))
    return False


def score_row(
    row: Sequence[Any],
    next_row: Optional[Sequence[Any]],
    keywords: Sequence[str],
    table_width: int = 0
) -> float:
    """
    Scores a row: higher means more likely to be the header.

    Args:
        row: Candidate row
        next_row: Row right below the candidate (None for the last row)
        keywords: Header keyword dictionary (lowercase)
        table_width: Widest row in the scan window

    Returns:
        Score (-inf for rows with no values at all)
    """
    non_empty = [cell for cell in row if not is_blank(cell)]
    if not non_empty:
        return float('-inf')

    score = 0.0

    # Mostly empty rows are rarely headers
    if len(non_empty) < len(row) * SPARSE_ROW_RATIO:
        score -= SPARSE_ROW_PENALTY

    # A lone text cell in a multi-column table reads like a report title
    if len(non_empty) == 1 and table_width > 1 and isinstance(non_empty[0], str):
        score -= TITLE_ROW_PENALTY

    for cell in non_empty:
        text = cell_to_text(classify_cell(cell)).lower().strip()

        if isinstance(cell, str) and text:
            score += TEXT_CELL_SCORE

        # Count each cell once
        if any(keyword in text for keyword in keywords):
            score += KEYWORD_SCORE

    # Text header above numeric/date data
    if next_row:
        type_differences = 0
        for current_cell, next_cell in zip(row, next_row):
            if _is_label_text(current_cell) and _is_data_value(next_cell):
                type_differences += 1

        if type_differences >= TYPE_CONTRAST_MIN_COLUMNS:
            score += TYPE_CONTRAST_BONUS

    return score


def detect_header_row(table: RawTable, config: Optional[ImportConfig] = None) -> int:
    """
    Detects the most likely header row.

    Only the first `header_scan_rows` rows are candidates; ties go to the
    lowest index and a table without signal defaults to row 0.

    Args:
        table: Raw grid
        config: Configuration override

    Returns:
        0-based index of the header row
    """
    if len(table) <= 1:
        return 0

    config = config or get_config()
    keywords = config.header_keywords
    rows_to_check = min(config.header_scan_rows, len(table))
    table_width = max((len(row) for row in table[:rows_to_check]), default=0)

    best_row_index = 0
    best_score = float('-inf')

    for i in range(rows_to_check):
        next_row = table[i + 1] if i + 1 < len(table) else None
        score = score_row(table[i], next_row, keywords, table_width)
        logger.debug(f"[HEADER_DETECTOR] Row {i} score={score}")

        if score > best_score:
            best_score = score
            best_row_index = i

    logger.info(f"[HEADER_DETECTOR] Header row detected at index {best_row_index} (score={best_score})")
    return best_row_index


def get_headers(table: RawTable, header_row_index: int) -> List[str]:
    """
    Returns the header labels at the given row.

    Empty cells become "Column N" (1-based); an invalid index gives [].
    """
    if header_row_index < 0 or header_row_index >= len(table):
        return []

    headers = []
    for index, cell in enumerate(table[header_row_index]):
        label = cell_to_text(classify_cell(cell)).strip()
        headers.append(label if label else f"Column {index + 1}")
    return headers


def get_data_rows(table: RawTable, header_row_index: int) -> RawTable:
    """Returns every row strictly after the header row."""
    return [row for index, row in enumerate(table) if index > header_row_index]
