"""Qualifier models - relational filter conditions supplied by a caller.

A qualifier is a single `column <operator> value` condition. Set
membership (`IN` / `NOT IN`) is expressed as `=` / `<>` with a list value.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Union

from pydantic import BaseModel, ConfigDict, Field


class Operator(str, Enum):
    """Comparison operators a qualifier may carry."""
    EQ = "="
    NE = "<>"
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="


ScalarValue = Union[bool, int, float, datetime, date, str]
QualValue = Union[ScalarValue, List[ScalarValue], None]


class Qualifier(BaseModel):
    """One filter condition on one column."""
    column: str = Field(..., description="Column name in the local naming convention")
    operator: Operator
    value: QualValue = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_list(self) -> bool:
        return isinstance(self.value, (list, tuple))


def group_by_column(qualifiers: Iterable[Qualifier]) -> Dict[str, List[Qualifier]]:
    """Group qualifiers by column, keeping the caller's order within a column."""
    grouped: Dict[str, List[Qualifier]] = {}
    for qual in qualifiers:
        grouped.setdefault(qual.column, []).append(qual)
    return grouped
