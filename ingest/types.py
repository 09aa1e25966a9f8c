from __future__ import annotations

import json
import math
import numbers
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from ingest.models import ColumnDefinition

FileType = Literal["xlsx", "xls", "csv", "json"]

ColumnType = Literal["text", "number", "currency", "date", "select"]

ColumnRole = Literal["name", "quantity", "minQuantity", "price", "cost", "barcode"]

MatchType = Literal["exact", "alias", "fuzzy", "manual", "none"]

WarningType = Literal["whitespace", "number_extraction", "currency_parsing", "date_parsing", "other"]

RawCell = Union[str, int, float, bool, datetime, date, None]

RawTable = List[List[Any]]

T = TypeVar("T")


# Tagged cell union: every raw value from a decoder is classified into exactly one variant

@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Number:
    value: Union[int, float]


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class Date:
    value: Union[datetime, date]


Cell = Union[Empty, Text, Number, Boolean, Date]


def classify_cell(value: Any) -> Cell:
    if isinstance(value, (Empty, Text, Number, Boolean, Date)):
        return value
    if value is None:
        return Empty()
    # bool is an int subclass: check it first
    if isinstance(value, bool):
        return Boolean(value)
    if isinstance(value, numbers.Real):
        return Number(value)
    if isinstance(value, (datetime, date)):
        return Date(value)
    if isinstance(value, str):
        return Text(value)
    if isinstance(value, (dict, list)):
        return Text(json.dumps(value, ensure_ascii=False, default=str))
    return Text(str(value))


def format_number(value: Union[int, float]) -> str:
    """Renders a number without a trailing '.0' for integral floats."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def cell_to_text(cell: Cell) -> str:
    if isinstance(cell, Empty):
        return ""
    if isinstance(cell, Text):
        return cell.value
    if isinstance(cell, Boolean):
        return "true" if cell.value else "false"
    if isinstance(cell, Number):
        return format_number(cell.value)
    return cell.value.isoformat()


def is_blank(value: Any) -> bool:
    """True for None and strings that are empty after stripping."""
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""


@dataclass
class SanitizeResult(Generic[T]):
    value: Optional[T]
    warning: bool = False
    warning_message: Optional[str] = None
    warning_type: Optional[WarningType] = None


@dataclass
class RowWarning:
    message: str
    type: WarningType


@dataclass
class SanitizeRowResult:
    data: Dict[str, Any] = field(default_factory=dict)
    warning_count: int = 0
    warnings: Dict[str, RowWarning] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """camelCase dict for API payloads."""
        return {
            "data": dict(self.data),
            "warningCount": self.warning_count,
            "warnings": {
                column_id: {"message": w.message, "type": w.type}
                for column_id, w in self.warnings.items()
            },
        }


@dataclass
class ColumnMatch:
    schema_column: "ColumnDefinition"
    confidence: float
    match_type: Literal["exact", "alias", "fuzzy"]
