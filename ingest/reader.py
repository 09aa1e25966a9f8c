"""
Tabular reader - raw bytes to a uniform row/column grid.

Spreadsheet and CSV decoding goes through a SpreadsheetDecoder so callers
and tests can swap in a fake; JSON is decoded here directly.
"""
import logging
from typing import Optional, Protocol, runtime_checkable

from core.config import ImportConfig, get_config
from ingest.csv_parser import parse_csv
from ingest.errors import FormatError
from ingest.excel_parser import parse_excel
from ingest.json_parser import parse_json
from ingest.types import FileType, RawTable

logger = logging.getLogger(__name__)

EMPTY_FILE_MESSAGE = "The file appears to be empty."


@runtime_checkable
class SpreadsheetDecoder(Protocol):
    """Decodes spreadsheet/CSV bytes into a RawTable (first sheet only, blank rows dropped)."""

    def decode(self, file_content: bytes, file_type: FileType) -> RawTable: ...


class PandasDecoder:
    """Default decoder backed by pandas (openpyxl/xlrd for workbooks)."""

    def decode(self, file_content: bytes, file_type: FileType) -> RawTable:
        if file_type == 'csv':
            rows, _ = parse_csv(file_content)
            return rows
        if file_type in ('xlsx', 'xls'):
            rows, _ = parse_excel(file_content, file_type)
            return rows
        raise FormatError(f"Decoder cannot handle file type: {file_type}")


def check_file_size(size: int, config: Optional[ImportConfig] = None) -> None:
    """
    Enforces the size ceiling before any parsing.

    Raises:
        FormatError: If size exceeds the configured limit
    """
    config = config or get_config()
    if size > config.max_file_size_bytes:
        logger.warning(f"[READER] File rejected: {size} bytes > {config.max_file_size_bytes} bytes")
        raise FormatError(
            f"File size exceeds {config.max_file_size_mb}MB limit. Please use a smaller file."
        )


def read_table(
    file_content: bytes,
    file_type: FileType,
    decoder: Optional[SpreadsheetDecoder] = None,
    config: Optional[ImportConfig] = None
) -> RawTable:
    """
    Decodes a classified file into a RawTable.

    Args:
        file_content: Raw file bytes
        file_type: Type returned by detect_file_type
        decoder: Spreadsheet/CSV decoder (PandasDecoder when None)
        config: Configuration override

    Returns:
        Non-empty list of rows

    Raises:
        FormatError: Oversized, corrupted, badly shaped or empty input
    """
    config = config or get_config()
    check_file_size(len(file_content), config)

    if file_type == 'json':
        rows = parse_json(file_content, array_index_header=config.json_array_index_header)
    else:
        decoder = decoder or PandasDecoder()
        try:
            rows = decoder.decode(file_content, file_type)
        except FormatError:
            raise
        except Exception as e:
            logger.error(f"[READER] Decoder failed for {file_type}: {e}")
            raise FormatError(str(e) or f"Failed to parse {file_type} file.") from e

    if not rows:
        raise FormatError(EMPTY_FILE_MESSAGE)

    logger.debug(f"[READER] Read {len(rows)} rows ({file_type})")
    return rows
