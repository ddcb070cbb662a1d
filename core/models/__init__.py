"""Core data models - CRM-neutral table and filter types.

This package contains the relational models that are intentionally
independent of any specific CRM system.
"""

from core.models.schema import (
    ColumnType,
    ColumnDescriptor,
    KeyColumn,
    TableSchema,
    EQUALITY_OPERATORS,
    RANGE_OPERATORS,
    operators_for,
)

from core.models.quals import (
    Operator,
    Qualifier,
    QualValue,
    ScalarValue,
    group_by_column,
)

__all__ = [
    # Schema
    "ColumnType",
    "ColumnDescriptor",
    "KeyColumn",
    "TableSchema",
    "EQUALITY_OPERATORS",
    "RANGE_OPERATORS",
    "operators_for",

    # Qualifiers
    "Operator",
    "Qualifier",
    "QualValue",
    "ScalarValue",
    "group_by_column",
]
