"""
JSON Parser.

Turns a JSON array of objects (or of arrays) into a raw row/column grid.
"""
import json
import logging
from typing import Any, Dict, List

from ingest.errors import FormatError
from ingest.types import RawTable

logger = logging.getLogger(__name__)

INVALID_JSON_SHAPE_MESSAGE = "Invalid JSON format. Expected an array of objects or array of arrays."


def _cell(value: Any) -> Any:
    return '' if value is None else value


def _objects_to_rows(items: List[Any]) -> RawTable:
    """Header row is the first-seen union of keys; missing or null values become ''."""
    headers: List[str] = []
    seen = set()
    for item in items:
        if isinstance(item, dict):
            for key in item:
                if key not in seen:
                    seen.add(key)
                    headers.append(key)

    rows: RawTable = [list(headers)]
    for item in items:
        if isinstance(item, dict):
            rows.append([_cell(item.get(header)) for header in headers])
    return rows


def _arrays_to_index_rows(items: List[Any]) -> RawTable:
    """Arrays read as objects keyed by position: adds a '0','1',... header row."""
    as_objects: List[Dict[str, Any]] = [
        {str(i): v for i, v in enumerate(item)}
        for item in items
        if isinstance(item, list)
    ]
    return _objects_to_rows(as_objects)


def _arrays_to_rows(items: List[Any]) -> RawTable:
    return [[_cell(v) for v in item] for item in items if isinstance(item, list)]


def parse_json(file_content: bytes, array_index_header: bool = False) -> RawTable:
    """
    Parses JSON content into a raw grid.

    Args:
        file_content: File content (bytes)
        array_index_header: Treat arrays of arrays like arrays of objects,
            producing a synthetic header of stringified indices

    Returns:
        Rows (header row first)

    Raises:
        FormatError: On syntax errors or an unsupported top-level shape
    """
    try:
        text = file_content.decode('utf-8-sig')
        payload = json.loads(text)
    except UnicodeDecodeError as e:
        raise FormatError(f"Invalid JSON file: {e}") from e
    except json.JSONDecodeError as e:
        logger.warning(f"[JSON_PARSER] Syntax error: {e}")
        raise FormatError(f"Invalid JSON file: {e}") from e

    if not isinstance(payload, list) or not payload:
        raise FormatError(INVALID_JSON_SHAPE_MESSAGE)

    first = payload[0]
    if isinstance(first, dict):
        rows = _objects_to_rows(payload)
        shape = 'objects'
    elif isinstance(first, list):
        if array_index_header:
            rows = _arrays_to_index_rows(payload)
        else:
            rows = _arrays_to_rows(payload)
        shape = 'arrays'
    else:
        raise FormatError(INVALID_JSON_SHAPE_MESSAGE)

    logger.info(f"[JSON_PARSER] JSON parsed: {len(rows)} rows from array of {shape}")
    return rows
