"""
Cell sanitization.

Coerces one raw cell into the canonical value for its column type and flags
whether interpretation was needed. A None value without a warning always
means the input was empty; invalid input always sets warning=True.
"""
import logging
import math
import re
import warnings
from datetime import date, datetime, timezone
from typing import Any, Optional, Tuple, Union

import pandas as pd

from ingest.types import (
    ColumnType,
    Date,
    Empty,
    Number,
    SanitizeResult,
    Text,
    WarningType,
    cell_to_text,
    classify_cell,
    format_number,
    is_blank,
)

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = '$€£¥'

_SYM = f'[{CURRENCY_SYMBOLS}]'

# Clean currency/number formats that are accepted without a warning:
#  - symbol with thousands separators: $1,234  $1,234.56
#  - symbol with decimals: $1.50  €49,99
#  - thousands separators without symbol: 1,234.56  1,234,567
#  - accounting negatives: ($1,234.56)  (123.45)  (€49)
# A bare symbol without other formatting ($100) is not clean.
CURRENCY_REGEX = re.compile(
    rf'^\s*(\()?\s*-?\s*{_SYM}\s*-?\s*\d{{1,3}}(?:,\d{{3}})+(?:[.,]\d+)?\s*{_SYM}?\s*(\))?\s*$'
    rf'|^\s*(\()?\s*-?\s*{_SYM}\s*-?\s*\d+[.,]\d+\s*{_SYM}?\s*(\))?\s*$'
    rf'|^\s*(\()?\s*-?\s*\d{{1,3}}(?:,\d{{3}})+(?:[.,]\d+)?\s*{_SYM}?\s*(\))?\s*$'
    rf'|^\s*\(\s*{_SYM}?\s*\d+(?:[.,]\d+)?\s*{_SYM}?\s*\)\s*$'
)

# A number wrapped in parentheses anywhere in the text: "net (123.45)"
_ACCOUNTING_NEGATIVE_RE = re.compile(rf'\(\s*{_SYM}?\s*[\d,.]*\d\s*{_SYM}?\s*\)')

_SIMPLE_NUMBER_RE = re.compile(r'^[-+]?\d*\.?\d+$')
_LEADING_FLOAT_RE = re.compile(r'^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?')
_SCIENTIFIC_RE = re.compile(r'[-+]?\d*\.?\d+[eE][-+]?\d+')
_EMBEDDED_CURRENCY_RE = re.compile(rf'{_SYM}?\s*-?\s*[\d,]+(?:[.,]\d+)?')
_NEGATIVE_RE = re.compile(r'-\s*\d+(?:\.\d+)?')
_FIRST_NUMBER_RE = re.compile(r'\d+(?:\.\d+)?|\.\d+')

MONTH_NAMES = {
    'january': 1, 'jan': 1,
    'february': 2, 'feb': 2,
    'march': 3, 'mar': 3,
    'april': 4, 'apr': 4,
    'may': 5,
    'june': 6, 'jun': 6,
    'july': 7, 'jul': 7,
    'august': 8, 'aug': 8,
    'september': 9, 'sep': 9, 'sept': 9,
    'october': 10, 'oct': 10,
    'november': 11, 'nov': 11,
    'december': 12, 'dec': 12,
}

DAYS_IN_MONTH = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

_ISO_DATE_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')
_ISO_SPACE_TIME_RE = re.compile(r'^\s+(\d{2}):(\d{2}):?(\d{2})?')
_SLASH_ISO_RE = re.compile(r'^(\d{4})/(\d{1,2})/(\d{1,2})')
_LONG_DATE_RE = re.compile(
    r'^([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})(?:\s+(\d{1,2}):(\d{2})(?:\s*(AM|PM))?)?',
    re.IGNORECASE
)
_SLASH_DATE_RE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})')
_FOUR_DIGIT_YEAR_RE = re.compile(r'(?<!\d)\d{4}(?!\d)')


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def sanitize_string(value: Any) -> str:
    """
    Normalizes a value to a string.

    - None -> ''
    - numbers/booleans/dates are stringified
    - runs of whitespace (spaces, tabs, newlines, CR) collapse to one space
    - leading/trailing whitespace is trimmed
    """
    text = cell_to_text(classify_cell(value))
    return re.sub(r'\s+', ' ', text).strip()


def _collapse_with_warning(value: Any) -> SanitizeResult[str]:
    original = cell_to_text(classify_cell(value))
    sanitized = sanitize_string(value)
    # A plain trim is not worth a warning; collapsing inner whitespace is
    had_excess_whitespace = original != sanitized and original.strip() != sanitized
    if had_excess_whitespace:
        return SanitizeResult(
            value=sanitized,
            warning=True,
            warning_message="Whitespace normalized",
            warning_type='whitespace',
        )
    return SanitizeResult(value=sanitized)


def sanitize_text(value: Any) -> SanitizeResult[str]:
    """Text column: never None (empty input gives ''), warns on whitespace collapse."""
    return _collapse_with_warning(value)


def sanitize_select(value: Any) -> SanitizeResult[str]:
    """Select column: None for empty input, otherwise like text."""
    cell = classify_cell(value)
    if isinstance(cell, Empty) or is_blank(cell_to_text(cell)):
        return SanitizeResult(value=None)
    return _collapse_with_warning(value)


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

def _parse_float(text: str) -> Optional[float]:
    """Parses the leading numeric prefix of text ("12abc" -> 12.0)."""
    match = _LEADING_FLOAT_RE.match(text)
    if not match:
        return None
    try:
        number = float(match.group(0))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _as_number(number: float) -> Union[int, float]:
    if number.is_integer() and abs(number) < 2 ** 53:
        return int(number)
    return number


def is_currency_format(text: str) -> bool:
    return CURRENCY_REGEX.match(text) is not None


def parse_currency_format(text: str) -> Optional[float]:
    """
    Parses a currency-formatted string, US (1,234.56) or European (1.234,56).

    The later of the last comma / last period is the decimal separator; a
    lone comma followed by exactly three digits is a thousands separator.
    Parentheses or a minus sign make the result negative.
    """
    is_accounting_negative = '(' in text and ')' in text
    has_negative_sign = '-' in text

    cleaned = re.sub(rf'[{CURRENCY_SYMBOLS}()\s-]', '', text)

    last_comma = cleaned.rfind(',')
    last_period = cleaned.rfind('.')

    if last_comma > -1 and last_period > -1:
        if last_comma > last_period:
            # European: 1.234,56
            cleaned = cleaned.replace('.', '').replace(',', '.', 1)
        else:
            # US: 1,234.56
            cleaned = cleaned.replace(',', '')
    elif last_comma > -1:
        after_comma = cleaned[last_comma + 1:]
        if len(after_comma) == 3:
            # Thousands: 1,234
            cleaned = cleaned.replace(',', '')
        else:
            # Decimal: 1,5
            cleaned = cleaned.replace(',', '.', 1)

    number = _parse_float(cleaned)
    if number is None:
        return None

    if is_accounting_negative or has_negative_sign:
        return -abs(number)
    return number


def extract_number(text: str) -> Tuple[Optional[float], bool]:
    """
    Extracts the first number embedded in text.

    Tries in order: scientific notation, a currency-formatted number, an
    explicit negative number, the first plain number.
    A number wrapped in parentheses anywhere in the text is negative.

    Returns:
        Tuple (number or None, warning). Only a string that is exactly a
        scientific literal comes back without a warning.
    """
    is_accounting_negative = _ACCOUNTING_NEGATIVE_RE.search(text) is not None

    def signed(number: float) -> float:
        return -abs(number) if is_accounting_negative else number

    scientific = _SCIENTIFIC_RE.search(text)
    if scientific:
        number = _parse_float(scientific.group(0))
        if number is not None:
            return signed(number), text.strip() != scientific.group(0)

    # "$1,234.56 USD", "€1.234,56 incl."
    currency = _EMBEDDED_CURRENCY_RE.search(text)
    if currency:
        matched = currency.group(0)
        if ',' in matched or re.search(_SYM, matched):
            number = parse_currency_format(matched)
            if number is not None:
                return signed(number), True

    # "value: -42"
    negative = _NEGATIVE_RE.search(text)
    if negative:
        number = _parse_float(re.sub(r'\s', '', negative.group(0)))
        if number is not None:
            return number, True

    first = _FIRST_NUMBER_RE.search(text)
    if first:
        number = _parse_float(first.group(0))
        if number is not None:
            return signed(number), True

    return None, True


def sanitize_number(value: Any) -> SanitizeResult[Union[int, float]]:
    """
    Number column.

    - empty/None/whitespace -> (None, no warning)
    - finite numbers and clean numeric strings -> value, no warning
    - clean currency formats ($1,234.56, (1,234.00)) -> value, no warning
    - numbers extracted from mixed content -> value, warning 'number_extraction'
    - nothing numeric -> (None, warning)
    """
    cell = classify_cell(value)

    if isinstance(cell, Empty):
        return SanitizeResult(value=None)

    if isinstance(cell, Number):
        number = cell.value
        if isinstance(number, float) and not math.isfinite(number):
            return SanitizeResult(
                value=None,
                warning=True,
                warning_message=f"Not a finite number: {number}",
                warning_type='number_extraction',
            )
        return SanitizeResult(value=number)

    text = cell_to_text(cell).strip()
    if text == '':
        return SanitizeResult(value=None)

    if isinstance(cell, Text):
        if _SIMPLE_NUMBER_RE.match(text):
            number = _parse_float(text)
            if number is not None:
                return SanitizeResult(value=_as_number(number))

        if is_currency_format(text):
            number = parse_currency_format(text)
            if number is not None:
                return SanitizeResult(value=_as_number(number))

    extracted, warning = extract_number(text)
    if extracted is not None:
        number = _as_number(extracted)
        if not warning:
            return SanitizeResult(value=number)
        return SanitizeResult(
            value=number,
            warning=True,
            warning_message=f'Extracted {format_number(number)} from "{text}"',
            warning_type='number_extraction',
        )

    return SanitizeResult(
        value=None,
        warning=True,
        warning_message=f'No number found in "{text}"',
        warning_type='number_extraction',
    )


def sanitize_currency(value: Any) -> SanitizeResult[Union[int, float]]:
    """Currency column: number sanitization with warnings relabelled 'currency_parsing'."""
    result = sanitize_number(value)
    if result.warning_type is not None:
        result.warning_type = 'currency_parsing'
    return result


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def is_valid_date(year: int, month: int, day: int) -> bool:
    """Checks month/day ranges against real month lengths, including leap years."""
    if month < 1 or month > 12:
        return False
    if day < 1:
        return False
    if month == 2:
        is_leap = (year % 4 == 0 and year % 100 != 0) or (year % 400 == 0)
        return day <= (29 if is_leap else 28)
    return day <= DAYS_IN_MONTH[month - 1]


def to_iso_string(value: Union[datetime, date]) -> str:
    """ISO 8601 in UTC with millisecond precision: 2024-01-15T00:00:00.000Z."""
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f'{value.microsecond // 1000:03d}Z'


def _build(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> Optional[str]:
    try:
        return to_iso_string(datetime(year, month, day, hour, minute, second))
    except ValueError:
        return None


def _parse_iso(trimmed: str, match: 're.Match') -> Optional[str]:
    year, month, day = (int(g) for g in match.groups())
    if not is_valid_date(year, month, day):
        return None

    rest = trimmed[match.end():]
    if not rest:
        return _build(year, month, day)

    # Full ISO timestamp, with or without offset
    candidate = trimmed[:-1] + '+00:00' if trimmed.endswith(('Z', 'z')) else trimmed
    try:
        return to_iso_string(datetime.fromisoformat(candidate))
    except ValueError:
        pass

    # "YYYY-MM-DD HH:mm[:ss]"
    space_time = _ISO_SPACE_TIME_RE.match(rest)
    if space_time:
        hour, minute = int(space_time.group(1)), int(space_time.group(2))
        second = int(space_time.group(3)) if space_time.group(3) else 0
        built = _build(year, month, day, hour, minute, second)
        if built:
            return built

    return _build(year, month, day)


def _parse_long_date(match: 're.Match') -> Optional[str]:
    month = MONTH_NAMES.get(match.group(1).lower())
    if month is None:
        return None

    day = int(match.group(2))
    year = int(match.group(3))
    if not is_valid_date(year, month, day):
        return None

    hours = int(match.group(4)) if match.group(4) else 0
    minutes = int(match.group(5)) if match.group(5) else 0
    ampm = match.group(6).upper() if match.group(6) else None

    if ampm == 'PM' and hours < 12:
        hours += 12
    if ampm == 'AM' and hours == 12:
        hours = 0

    return _build(year, month, day, hours, minutes)


def _parse_fallback(trimmed: str) -> Optional[str]:
    """Lenient parse, only for strings carrying a 4-digit year."""
    if not _FOUR_DIGIT_YEAR_RE.search(trimmed):
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            parsed = pd.to_datetime(trimmed, errors='coerce')
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    if not 1000 <= parsed.year <= 9999:
        return None
    return to_iso_string(parsed.to_pydatetime())


def parse_date(text: str) -> Optional[str]:
    """
    Parses a date string into an ISO string.

    Formats, in priority order:
    1. YYYY-MM-DD[THH:mm:ss] (also "YYYY-MM-DD HH:mm:ss")
    2. YYYY/MM/DD
    3. "Month DD, YYYY" / "Mon DD YYYY" with optional "HH:mm [AM|PM]"
    4. MM/DD/YYYY, or DD/MM/YYYY when the first part is > 12
    5. lenient fallback requiring a 4-digit year

    Returns:
        ISO string, or None when nothing matches
    """
    trimmed = text.strip()

    iso = _ISO_DATE_RE.match(trimmed)
    if iso:
        return _parse_iso(trimmed, iso)

    slash_iso = _SLASH_ISO_RE.match(trimmed)
    if slash_iso:
        year, month, day = (int(g) for g in slash_iso.groups())
        return _build(year, month, day) if is_valid_date(year, month, day) else None

    long_date = _LONG_DATE_RE.match(trimmed)
    if long_date:
        return _parse_long_date(long_date)

    slash = _SLASH_DATE_RE.match(trimmed)
    if slash:
        first, second, year = (int(g) for g in slash.groups())
        if first > 12:
            # Must be DD/MM/YYYY
            month, day = second, first
        else:
            # US convention by default
            month, day = first, second
        return _build(year, month, day) if is_valid_date(year, month, day) else None

    return _parse_fallback(trimmed)


def sanitize_date(value: Any) -> SanitizeResult[str]:
    """
    Date column: ISO string on success.

    - empty/None -> (None, no warning)
    - native date objects -> ISO string (invalid timestamp -> warning)
    - strings parsed by parse_date; no match -> (None, warning 'date_parsing')
    """
    cell = classify_cell(value)

    if isinstance(cell, Empty):
        return SanitizeResult(value=None)

    if isinstance(cell, Date):
        if cell.value is pd.NaT:
            return SanitizeResult(
                value=None,
                warning=True,
                warning_message="Invalid date value",
                warning_type='date_parsing',
            )
        return SanitizeResult(value=to_iso_string(cell.value))

    text = cell_to_text(cell).strip()
    if text == '':
        return SanitizeResult(value=None)

    parsed = parse_date(text)
    if parsed:
        return SanitizeResult(value=parsed)

    return SanitizeResult(
        value=None,
        warning=True,
        warning_message=f'Could not parse date "{text}"',
        warning_type='date_parsing',
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def sanitize_cell(value: Any, column_type: ColumnType) -> SanitizeResult[Any]:
    """
    Sanitizes a cell according to its column type.

    Unknown types are treated as text without warnings.
    """
    if column_type == 'text':
        return sanitize_text(value)
    if column_type == 'number':
        return sanitize_number(value)
    if column_type == 'currency':
        return sanitize_currency(value)
    if column_type == 'date':
        return sanitize_date(value)
    if column_type == 'select':
        return sanitize_select(value)

    logger.warning(f"[SANITIZE] Unknown column type '{column_type}', treating as text")
    return SanitizeResult(value=sanitize_string(value))


WARNING_TYPE_LABELS = {
    'whitespace': 'Whitespace normalized',
    'number_extraction': 'Number extracted',
    'currency_parsing': 'Currency parsed',
    'date_parsing': 'Date parsed',
}


def format_warning_type(warning_type: WarningType) -> str:
    """Display label for a warning type."""
    return WARNING_TYPE_LABELS.get(warning_type, 'Value modified')
