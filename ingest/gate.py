"""
Gate (Stage 0) - File type detection.

Classifies an upload by its filename extension before any byte is parsed.
"""
import logging
from typing import Optional

from ingest.types import FileType

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {
    'xlsx': 'xlsx',
    'xls': 'xls',
    'csv': 'csv',
    'json': 'json',
}

UNSUPPORTED_FILE_MESSAGE = "Unsupported file type. Please use .xlsx, .xls, .csv, or .json files."


def detect_file_type(file_name: str) -> Optional[FileType]:
    """
    Detects the file type from the final extension of the filename.

    Args:
        file_name: Filename (e.g. "stock.2024.XLSX", ".csv")

    Returns:
        'xlsx', 'xls', 'csv' or 'json'; None when unsupported or missing
    """
    if not file_name or '.' not in file_name:
        logger.debug(f"[GATE] No extension in file name: {file_name!r}")
        return None

    ext = file_name.rsplit('.', 1)[-1].strip().lower()
    file_type = SUPPORTED_EXTENSIONS.get(ext)

    if file_type is None:
        logger.info(f"[GATE] Unsupported extension '.{ext}' for {file_name}")
    else:
        logger.debug(f"[GATE] File {file_name} detected as {file_type}")
    return file_type
