"""
Pydantic models for the import pipeline.

ColumnDefinition comes from the schema collaborator; ColumnMapping and
ParsedFile are produced here and serialized (camelCase) into API payloads.
"""
import logging
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ingest.types import ColumnRole, ColumnType, FileType, MatchType, RawTable

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ColumnDefinition(_CamelModel):
    """
    One column of the user-defined inventory schema.

    Owned by the schema collaborator; the pipeline only reads it.
    """
    id: str = Field(..., min_length=1, description="Unique column id")
    name: str = Field(..., description="Display label")
    type: ColumnType = Field(..., description="Column data type")
    role: Optional[ColumnRole] = Field(None, description="Optional semantic role (name, quantity, ...)")
    options: Optional[List[str]] = Field(None, description="Allowed values for select columns")
    required: bool = Field(default=False, description="Whether the column must be mapped")
    order: int = Field(default=0, description="Display/sort priority")

    @model_validator(mode='after')
    def validate_options(self) -> "ColumnDefinition":
        """Select columns need a non-empty option set; other types carry none."""
        if self.type == 'select':
            if not self.options:
                raise ValueError(f"Select column '{self.name}' requires at least one option")
        elif self.options:
            raise ValueError(f"Column '{self.name}' of type '{self.type}' cannot define options")
        return self


class NewColumnDefinition(_CamelModel):
    """Proposal to create a schema column during import."""
    name: str = Field(..., min_length=1, max_length=100)
    type: ColumnType = "text"
    role: Optional[ColumnRole] = None
    options: Optional[List[str]] = None
    required: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("name must not be blank")
        return v


class ColumnMapping(_CamelModel):
    """How one file column maps to a schema column, a new column, or nothing."""
    file_column_index: int = Field(..., ge=0)
    file_column_name: str
    schema_column_id: Optional[str] = None
    new_column: Optional[NewColumnDefinition] = None
    skip: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    match_type: MatchType = "none"


class ParsedFile(_CamelModel):
    """Result of reading a file: the raw grid and the suggested header row."""
    file_type: FileType
    file_name: str
    data: RawTable
    suggested_header_row: int = 0


def validate_unique_ids(columns: List[ColumnDefinition]) -> None:
    """
    Checks that schema column ids are unique.

    Raises:
        ValueError: If an id appears more than once
    """
    seen = set()
    for column in columns:
        if column.id in seen:
            raise ValueError(f"Duplicate schema column id: {column.id}")
        seen.add(column.id)
