"""
Excel Parser.

Decodes XLSX/XLS bytes into a raw row/column grid (first sheet only, pandas).
"""
import io
import logging
import math
from datetime import time
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from ingest.errors import FormatError
from ingest.types import RawTable

logger = logging.getLogger(__name__)

EXCEL_ENGINES = {
    'xlsx': 'openpyxl',
    'xls': 'xlrd',
}


def _to_python(value: Any) -> Any:
    """Converts a pandas/numpy cell into a plain Python value ('' for missing)."""
    if value is None or value is pd.NaT:
        return ''
    if isinstance(value, float) and math.isnan(value):
        return ''
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and math.isnan(value):
            return ''
        return value
    if isinstance(value, time):
        return value.isoformat()
    return value


def parse_excel(file_content: bytes, file_type: str = 'xlsx') -> Tuple[RawTable, Dict[str, Any]]:
    """
    Parses an Excel workbook with pandas, using only the first sheet.

    Args:
        file_content: File content (bytes)
        file_type: 'xlsx' or 'xls' (selects the pandas engine)

    Returns:
        Tuple (rows, sheet_info)

    Raises:
        FormatError: If the workbook is corrupted or has no sheets
    """
    engine = EXCEL_ENGINES.get(file_type)

    try:
        excel_file = pd.ExcelFile(io.BytesIO(file_content), engine=engine)
    except Exception as e:
        logger.error(f"[EXCEL_PARSER] Error opening workbook: {e}")
        raise FormatError(str(e) or "Failed to read workbook.") from e

    with excel_file:
        sheet_names = excel_file.sheet_names
        logger.info(f"[EXCEL_PARSER] Workbook has {len(sheet_names)} sheets: {sheet_names}")

        if not sheet_names:
            raise FormatError("No sheets found in the file.")

        first_sheet = sheet_names[0]
        try:
            df = pd.read_excel(excel_file, sheet_name=first_sheet, header=None, dtype=object)
        except Exception as e:
            logger.error(f"[EXCEL_PARSER] Error reading sheet '{first_sheet}': {e}")
            raise FormatError(str(e) or "Failed to read worksheet.") from e

    rows: RawTable = []
    for raw_row in df.itertuples(index=False, name=None):
        row = [_to_python(cell) for cell in raw_row]
        if any(cell != '' for cell in row):
            rows.append(row)

    logger.info(
        f"[EXCEL_PARSER] Excel parsed: sheet='{first_sheet}', "
        f"{len(rows)} rows, {len(df.columns)} columns"
    )

    sheet_info = {
        'sheet_name': first_sheet,
        'sheet_index': 0,
        'total_sheets': len(sheet_names),
        'rows': len(rows),
        'columns': len(df.columns),
    }

    return rows, sheet_info
