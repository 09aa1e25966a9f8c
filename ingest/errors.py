"""
Import pipeline exception hierarchy.

Both errors subclass ValueError so callers that already catch ValueError
around file parsing keep working.
"""
from __future__ import annotations

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from ingest.models import ColumnDefinition


class ImportPipelineError(ValueError):
    """Base exception for all import pipeline errors."""


class FormatError(ImportPipelineError):
    """The file cannot be turned into a table (fatal to the whole import)."""


class MatchValidationError(ImportPipelineError):
    """A required schema column has no mapped, non-skipped file column."""

    def __init__(self, missing_columns: List["ColumnDefinition"]) -> None:
        self.missing_columns = missing_columns
        names = ", ".join(f'"{col.name}"' for col in missing_columns)
        super().__init__(f"Required columns are not mapped: {names}")
