"""
Import pipeline orchestrator.

Chains the stages of an import:
read (gate + reader) -> header detection -> column matching -> row sanitization.

Every invocation runs under its own correlation ID and emits JSON-line
summary events; the stages themselves stay pure.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.config import ImportConfig, get_config
from core.logger import log_json, set_request_context
from ingest.errors import FormatError, ImportPipelineError
from ingest.gate import UNSUPPORTED_FILE_MESSAGE, detect_file_type
from ingest.header_detector import detect_header_row, get_data_rows, get_headers
from ingest.models import ColumnDefinition, ColumnMapping, ParsedFile, validate_unique_ids
from ingest.normalization import auto_match_columns, map_row, require_valid_mappings
from ingest.reader import SpreadsheetDecoder, read_table
from ingest.types import FileType, RawTable, SanitizeRowResult
from ingest.validation import sanitize_batch

logger = logging.getLogger(__name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


@dataclass
class ImportPreview:
    """Everything the review step shows before the user confirms an import."""
    file_name: str
    file_type: FileType
    header_row_index: int
    suggested_header_row: int
    headers: List[str]
    mappings: List[ColumnMapping]
    rows: List[SanitizeRowResult]
    stats: Dict[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None

    @property
    def warning_count(self) -> int:
        return sum(row.warning_count for row in self.rows)

    def to_payload(self) -> Dict[str, Any]:
        """camelCase dict for API payloads."""
        return {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "headerRowIndex": self.header_row_index,
            "suggestedHeaderRow": self.suggested_header_row,
            "headers": list(self.headers),
            "mappings": [m.to_payload() for m in self.mappings],
            "rows": [row.to_payload() for row in self.rows],
            "warningCount": self.warning_count,
            "stats": {
                "rowsTotal": self.stats.get('rows_total', 0),
                "rowsWithWarnings": self.stats.get('rows_with_warnings', 0),
                "warningCount": self.stats.get('warning_count', 0),
                "warningsByType": dict(self.stats.get('warnings_by_type', {})),
            },
            "correlationId": self.correlation_id,
        }


def parse_file(
    file_content: bytes,
    file_name: str,
    decoder: Optional[SpreadsheetDecoder] = None,
    config: Optional[ImportConfig] = None
) -> ParsedFile:
    """
    Reads an uploaded file into a ParsedFile with a suggested header row.

    Args:
        file_content: Raw file bytes
        file_name: Original filename (type is detected from its extension)
        decoder: Spreadsheet/CSV decoder override
        config: Configuration override

    Returns:
        ParsedFile

    Raises:
        FormatError: Unsupported type, oversized, corrupted or empty file
    """
    config = config or get_config()

    file_type = detect_file_type(file_name)
    if file_type is None:
        raise FormatError(UNSUPPORTED_FILE_MESSAGE)

    table = read_table(file_content, file_type, decoder=decoder, config=config)
    suggested_header_row = detect_header_row(table, config)

    logger.info(
        f"[PIPELINE] Parsed {file_name}: type={file_type}, rows={len(table)}, "
        f"suggested_header_row={suggested_header_row}"
    )
    return ParsedFile(
        file_type=file_type,
        file_name=file_name,
        data=table,
        suggested_header_row=suggested_header_row,
    )


class ImportPipeline:
    """
    Stateful wrapper around the import stages for one target schema.

    `is_loading` is True only while a stage runs; `error` holds the message
    of the last failed call and is reset at the start of every call.
    """

    def __init__(
        self,
        columns: Sequence[ColumnDefinition],
        decoder: Optional[SpreadsheetDecoder] = None,
        config: Optional[ImportConfig] = None
    ):
        validate_unique_ids(list(columns))
        self.columns: List[ColumnDefinition] = list(columns)
        self.decoder = decoder
        self.config = config or get_config()
        self.is_loading = False
        self.error: Optional[str] = None

    def _start(self) -> None:
        self.is_loading = True
        self.error = None

    def parse(self, file_content: bytes, file_name: str) -> Optional[ParsedFile]:
        """
        Parses a file, recording the failure message instead of raising.

        Returns:
            ParsedFile, or None when the file cannot be read (see `error`)
        """
        self._start()
        try:
            return parse_file(file_content, file_name, decoder=self.decoder, config=self.config)
        except ImportPipelineError as e:
            self.error = str(e)
            logger.warning(f"[PIPELINE] Parse failed for {file_name}: {e}")
            return None
        finally:
            self.is_loading = False

    def match(self, headers: Sequence[str]) -> List[ColumnMapping]:
        """Proposes column mappings for the given header labels."""
        self._start()
        try:
            return auto_match_columns(headers, self.columns, self.config)
        finally:
            self.is_loading = False

    def sanitize(
        self,
        data_rows: RawTable,
        mappings: Sequence[ColumnMapping]
    ) -> Tuple[List[SanitizeRowResult], Dict[str, Any]]:
        """
        Maps and sanitizes data rows.

        Raises:
            MatchValidationError: If a required schema column is not mapped
        """
        self._start()
        try:
            require_valid_mappings(mappings, self.columns)
            records = [map_row(row, mappings) for row in data_rows]
            return sanitize_batch(records, self.columns)
        except ImportPipelineError as e:
            self.error = str(e)
            raise
        finally:
            self.is_loading = False

    def preview(
        self,
        file_content: bytes,
        file_name: str,
        header_row_index: Optional[int] = None,
        mappings: Optional[Sequence[ColumnMapping]] = None,
        correlation_id: Optional[str] = None
    ) -> ImportPreview:
        """
        Runs the whole pipeline and returns the preview shown for review.

        Args:
            file_content: Raw file bytes
            file_name: Original filename
            header_row_index: User-chosen header row (suggested row when None)
            mappings: User-edited mappings (auto-matched when None)
            correlation_id: Correlation ID (generated when None)

        Returns:
            ImportPreview

        Raises:
            FormatError: The file cannot be read
            MatchValidationError: A required column is not mapped
            ValueError: header_row_index outside the table
        """
        start_time = time.time()
        correlation_id = set_request_context(correlation_id=correlation_id, file_name=file_name)
        log_json(level='info', message=f"Import preview started for file: {file_name}", stage='read')

        self._start()
        try:
            parsed = parse_file(file_content, file_name, decoder=self.decoder, config=self.config)

            if header_row_index is None:
                header_row_index = parsed.suggested_header_row
            elif header_row_index < 0 or header_row_index >= len(parsed.data):
                raise ValueError(
                    f"Header row index {header_row_index} is outside the table (0-{len(parsed.data) - 1})"
                )

            headers = get_headers(parsed.data, header_row_index)
            data_rows = get_data_rows(parsed.data, header_row_index)
            log_json(
                level='info',
                message=f"Header row {header_row_index}: {len(headers)} columns",
                stage='header',
                file_type=parsed.file_type,
                rows_total=len(data_rows),
            )

            if mappings is None:
                mappings = auto_match_columns(headers, self.columns, self.config)
            mappings = list(mappings)
            log_json(
                level='info',
                message=f"Mapped {sum(1 for m in mappings if not m.skip)}/{len(mappings)} columns",
                stage='match',
            )

            require_valid_mappings(mappings, self.columns)
            records = [map_row(row, mappings) for row in data_rows]
            rows, stats = sanitize_batch(records, self.columns)

        except (ImportPipelineError, ValueError) as e:
            self.error = str(e)
            logger.error(f"[PIPELINE] Preview failed for {file_name}: {e}")
            log_json(
                level='error',
                message=f"Import preview failed: {e}",
                decision='error',
                elapsed_ms=_elapsed_ms(start_time),
                error_type=type(e).__name__,
            )
            raise
        finally:
            self.is_loading = False

        elapsed_ms = _elapsed_ms(start_time)
        log_json(
            level='info',
            message=f"Import preview completed: rows={stats['rows_total']}",
            stage='sanitize',
            file_type=parsed.file_type,
            rows_total=stats['rows_total'],
            rows_with_warnings=stats['rows_with_warnings'],
            warning_count=stats['warning_count'],
            elapsed_ms=elapsed_ms,
            decision='ok',
        )
        logger.info(
            f"[PIPELINE] Completed: {file_name} | rows={stats['rows_total']}, "
            f"warnings={stats['warning_count']}, elapsed={elapsed_ms:.0f}ms"
        )

        return ImportPreview(
            file_name=file_name,
            file_type=parsed.file_type,
            header_row_index=header_row_index,
            suggested_header_row=parsed.suggested_header_row,
            headers=headers,
            mappings=mappings,
            rows=rows,
            stats=stats,
            correlation_id=correlation_id,
        )


def run_import(
    file_content: bytes,
    file_name: str,
    columns: Sequence[ColumnDefinition],
    header_row_index: Optional[int] = None,
    mappings: Optional[Sequence[ColumnMapping]] = None,
    decoder: Optional[SpreadsheetDecoder] = None,
    config: Optional[ImportConfig] = None,
    correlation_id: Optional[str] = None
) -> ImportPreview:
    """One-shot import preview (see ImportPipeline.preview)."""
    pipeline = ImportPipeline(columns, decoder=decoder, config=config)
    return pipeline.preview(
        file_content,
        file_name,
        header_row_index=header_row_index,
        mappings=mappings,
        correlation_id=correlation_id,
    )
