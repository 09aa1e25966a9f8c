"""
CSV Parser.

Decodes CSV bytes into a raw row/column grid (encoding detection,
delimiter sniff, pandas parsing).
"""
import csv
import io
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import chardet
import pandas as pd

from ingest.errors import FormatError
from ingest.types import RawTable, format_number

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = [',', ';', '\t', '|']

# Plain decimal literal without leading zeros ("00123" stays text: SKUs, ZIP codes)
_PLAIN_NUMBER_RE = re.compile(r'^-?(?:0|[1-9]\d*)(?:\.\d+)?$')


def detect_encoding(file_content: bytes) -> Tuple[str, float]:
    """
    Detects the file encoding: utf-8-sig, then chardet's guess, then cp1252/latin-1.

    Args:
        file_content: File content (bytes)

    Returns:
        Tuple (encoding, confidence)
    """
    try:
        file_content.decode('utf-8-sig')
        logger.debug("[CSV_PARSER] Encoding detection: utf-8-sig")
        return 'utf-8-sig', 1.0
    except UnicodeDecodeError:
        pass

    # First 10KB is enough for chardet
    encoding_result = chardet.detect(file_content[:10000])
    detected_encoding = encoding_result.get('encoding')
    confidence = encoding_result.get('confidence') or 0.0

    candidates = [detected_encoding] if detected_encoding else []
    candidates += ['cp1252', 'latin-1']

    for enc in candidates:
        try:
            file_content.decode(enc)
            logger.debug(f"[CSV_PARSER] Encoding detection: {enc} (confidence={confidence:.2f})")
            return enc, confidence
        except (UnicodeDecodeError, LookupError):
            continue

    # latin-1 maps every byte, so this is unreachable in practice
    logger.warning("[CSV_PARSER] Encoding detection failed, using latin-1")
    return 'latin-1', 0.0


def detect_delimiter(text: str, sample_lines: int = 10) -> str:
    """
    Detects the CSV delimiter with csv.Sniffer, falling back to a consistency score.

    Args:
        text: Decoded file content
        sample_lines: Number of lines to inspect

    Returns:
        Delimiter (',', ';', '\\t', '|')
    """
    lines = text.splitlines()[:sample_lines]
    non_empty_lines = [line for line in lines if line.strip()]

    if not non_empty_lines:
        return ','

    try:
        sniffer = csv.Sniffer()
        sample = '\n'.join(non_empty_lines[:3])
        delimiter = sniffer.sniff(sample, delimiters=''.join(CANDIDATE_DELIMITERS)).delimiter
        logger.debug(f"[CSV_PARSER] CSV Sniffer detected delimiter: {delimiter!r}")
        return delimiter
    except csv.Error:
        pass

    # Fallback: score common separators
    separator_scores: Dict[str, int] = {}

    for sep in CANDIDATE_DELIMITERS:
        score = 0
        consistent = True

        for line in non_empty_lines:
            parts = line.split(sep)
            if len(parts) >= 2:
                score += len(parts)
            else:
                consistent = False

        # Bonus when every line has the same column count
        if consistent:
            column_counts = {len(line.split(sep)) for line in non_empty_lines}
            if len(column_counts) == 1:
                score *= 2

        separator_scores[sep] = score

    best_sep = max(separator_scores.items(), key=lambda x: x[1])[0]
    if separator_scores[best_sep] == 0:
        best_sep = ','
    logger.debug(f"[CSV_PARSER] Fallback delimiter detection: {best_sep!r}")
    return best_sep


def coerce_numeric(value: Any) -> Any:
    """
    Turns plain decimal strings into int/float; anything else is returned unchanged.

    Only strings that read back identically are coerced, so "1.10" and "2.0"
    keep the text as written.
    """
    if isinstance(value, str) and _PLAIN_NUMBER_RE.match(value):
        number = float(value) if '.' in value else int(value)
        if format_number(number) == value:
            return number
    return value


def parse_csv(
    file_content: bytes,
    separator: Optional[str] = None,
    encoding: Optional[str] = None
) -> Tuple[RawTable, Dict[str, Any]]:
    """
    Parses a CSV file with pandas into a raw grid.

    Rows are padded to the widest row, fully blank rows are dropped and
    plain numeric strings become numbers.

    Args:
        file_content: File content (bytes)
        separator: CSV delimiter (auto-detected when None)
        encoding: File encoding (auto-detected when None)

    Returns:
        Tuple (rows, detection_info)

    Raises:
        FormatError: If the content cannot be decoded or parsed
    """
    separator_provided = separator is not None

    if encoding is None:
        encoding, enc_confidence = detect_encoding(file_content)
    else:
        enc_confidence = 1.0

    try:
        text = file_content.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        logger.error(f"[CSV_PARSER] Cannot decode CSV as {encoding}: {e}")
        raise FormatError(f"Error parsing CSV: {e}") from e

    if separator is None:
        separator = detect_delimiter(text)

    try:
        width = max((len(r) for r in csv.reader(io.StringIO(text), delimiter=separator)), default=0)
        if width == 0:
            rows: RawTable = []
        else:
            df = pd.read_csv(
                io.StringIO(text),
                sep=separator,
                header=None,
                names=list(range(width)),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                engine='python',
            ).fillna('')
            rows = [
                [coerce_numeric(cell) for cell in row]
                for row in df.values.tolist()
                if any(cell != '' for cell in row)
            ]
    except (csv.Error, pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        logger.error(f"[CSV_PARSER] Error parsing CSV: {e}")
        raise FormatError(f"Error parsing CSV: {e}") from e

    logger.info(
        f"[CSV_PARSER] CSV parsed: {len(rows)} rows, {width} columns, "
        f"encoding={encoding}, separator={separator!r}"
    )

    detection_info = {
        'encoding': encoding,
        'encoding_confidence': enc_confidence,
        'separator': separator,
        'rows': len(rows),
        'columns': width,
        'method': 'provided' if separator_provided else 'auto-detected'
    }

    return rows, detection_info
