"""Relational schema models - CRM-neutral column and table types.

These models describe how a remote object type is exposed as a table:
which columns it has, what semantic type each column carries, and which
columns can be pushed down to the remote system as filters.

CRM-specific derivation (Salesforce describe metadata, etc.) lives in
/connectors/.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Column Types
# =============================================================================

class ColumnType(str, Enum):
    """Closed set of semantic column types.

    Every remote field kind maps onto exactly one of these. Kinds that are
    not recognised map to JSON rather than failing.
    """
    TEXT = "text"
    IDENTIFIER = "identifier"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DOUBLE = "double"
    DATE = "date"            # timestamp column, date-only on the remote side
    DATETIME = "datetime"    # timestamp column with time component
    JSON = "json"            # opaque, not filterable

    @property
    def is_text(self) -> bool:
        return self in (ColumnType.TEXT, ColumnType.IDENTIFIER)

    @property
    def is_timestamp(self) -> bool:
        return self in (ColumnType.DATE, ColumnType.DATETIME)

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnType.INTEGER, ColumnType.DOUBLE)


EQUALITY_OPERATORS: Tuple[str, ...] = ("=", "<>")
RANGE_OPERATORS: Tuple[str, ...] = ("=", ">", ">=", "<=", "<")


def operators_for(column_type: ColumnType) -> Tuple[str, ...]:
    """Filter operators a column of the given type accepts.

    Text and boolean columns only support equality; timestamps and numbers
    support ranges. JSON columns are never filterable.
    """
    if column_type.is_text or column_type == ColumnType.BOOLEAN:
        return EQUALITY_OPERATORS
    if column_type.is_timestamp or column_type.is_numeric:
        return RANGE_OPERATORS
    return ()


# =============================================================================
# Column / Table Models
# =============================================================================

class ColumnDescriptor(BaseModel):
    """A single column exposed by a table.

    `name` is in the active naming convention. `remote_name` is the field
    name as the remote system reports it; it is only known for columns
    derived from metadata and is authoritative when present.
    """
    name: str = Field(..., description="Column name in the local naming convention")
    type: ColumnType = Field(default=ColumnType.TEXT)
    description: str = Field(default="")
    is_custom: bool = Field(default=False, description="Organization-defined field")
    remote_name: Optional[str] = Field(default=None, description="Field name on the remote side")

    model_config = ConfigDict(frozen=True)


class KeyColumn(BaseModel):
    """A column the caller may filter on, with its allowed operators."""
    name: str
    operators: Tuple[str, ...] = Field(default_factory=tuple)
    required: bool = False

    model_config = ConfigDict(frozen=True)

    def supports(self, operator: str) -> bool:
        return operator in self.operators


class TableSchema(BaseModel):
    """Complete table definition for one remote object type."""
    object_type: str = Field(..., description="Remote object type, e.g. 'Account'")
    table_name: str = Field(..., description="Name the table is exposed under")
    columns: List[ColumnDescriptor] = Field(default_factory=list)
    key_columns: List[KeyColumn] = Field(default_factory=list)
    type_map: Dict[str, str] = Field(
        default_factory=dict,
        description="Local column name -> declared remote field type",
    )
    key_column_name: str = Field(default="id", description="Column holding the record id")

    model_config = ConfigDict(frozen=True)

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        """Look up a column by exact name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def select(self, names: Optional[List[str]] = None) -> List[ColumnDescriptor]:
        """Columns matching `names`, in table order. All columns when None."""
        if names is None:
            return list(self.columns)
        wanted = set(names)
        return [col for col in self.columns if col.name in wanted]
