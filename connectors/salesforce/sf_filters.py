"""Qualifier to SOQL WHERE translation.

Turns relational qualifiers into a SOQL filter fragment with the operator,
literal and date format each column type needs. Columns are walked in
table order and qualifiers in caller order, so the same input always
yields the same text.

String literals are substituted verbatim; a value containing a single
quote produces invalid SOQL.
"""

from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from connectors.salesforce.sf_naming import remote_column_name
from core.models.quals import Operator, Qualifier, group_by_column
from core.models.schema import ColumnDescriptor, ColumnType

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

REMOTE_DATE_TYPE = "date"

_TIMESTAMP_OPERATORS = (Operator.EQ, Operator.GT, Operator.GE, Operator.LE, Operator.LT)


def _quote(value) -> str:
    return f"'{value}'"


def _as_datetime(value) -> Optional[date]:
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def format_timestamp(value, date_only: bool) -> Optional[str]:
    """Render a timestamp literal.

    Aware values are converted to UTC first; naive values are taken as
    UTC. Date-only fields use YYYY-MM-DD, date-time fields use
    YYYY-MM-DDTHH:MM:SSZ.
    """
    ts = _as_datetime(value)
    if ts is None:
        return None
    # Both formats render the same instant, so convert before picking one
    if isinstance(ts, datetime) and ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    if date_only:
        return ts.strftime(DATE_FORMAT)
    return ts.strftime(DATETIME_FORMAT)


def _text_clause(field: str, qual: Qualifier) -> Optional[str]:
    if qual.is_list:
        values = [str(v) for v in qual.value]
        if not values:
            return None
        joined = "','".join(values)
        if qual.operator == Operator.EQ:
            return f"{field} IN ('{joined}')"
        if qual.operator == Operator.NE:
            return f"{field} NOT IN ('{joined}')"
        return None

    if qual.operator == Operator.EQ:
        return f"{field} = {_quote(qual.value)}"
    if qual.operator == Operator.NE:
        return f"{field} != {_quote(qual.value)}"
    return None


def _bool_clause(field: str, qual: Qualifier) -> Optional[str]:
    # Only the operator decides the literal
    if qual.operator == Operator.EQ:
        return f"{field} = TRUE"
    if qual.operator == Operator.NE:
        return f"{field} = FALSE"
    return None


def _numeric_clause(field: str, qual: Qualifier, column_type: ColumnType) -> Optional[str]:
    if qual.is_list:
        return None
    try:
        if column_type == ColumnType.DOUBLE:
            literal = "%f" % float(qual.value)
        else:
            literal = "%d" % int(qual.value)
    except (TypeError, ValueError):
        # Value of the wrong type for the column: nothing to push down
        return None
    operator = "!=" if qual.operator == Operator.NE else qual.operator.value
    return f"{field} {operator} {literal}"


def _timestamp_clause(field: str, qual: Qualifier, date_only: bool) -> Optional[str]:
    if qual.is_list or qual.operator not in _TIMESTAMP_OPERATORS:
        return None
    literal = format_timestamp(qual.value, date_only)
    if literal is None:
        return None
    return f"{field} {qual.operator.value} {literal}"


def _clause(column: ColumnDescriptor, qual: Qualifier, type_map: Dict[str, str]) -> Optional[str]:
    field = remote_column_name(column)
    column_type = column.type

    if column_type.is_text:
        return _text_clause(field, qual)
    if column_type == ColumnType.BOOLEAN:
        return _bool_clause(field, qual)
    if column_type.is_numeric:
        return _numeric_clause(field, qual, column_type)
    if column_type.is_timestamp:
        remote_type = type_map.get(column.name)
        if remote_type is not None:
            date_only = remote_type == REMOTE_DATE_TYPE
        else:
            date_only = column_type == ColumnType.DATE
        return _timestamp_clause(field, qual, date_only)
    return None


def build_filter(
    qualifiers: Iterable[Qualifier],
    columns: Sequence[ColumnDescriptor],
    type_map: Optional[Dict[str, str]] = None,
) -> str:
    """Build the SOQL WHERE fragment (without "WHERE") for qualifiers.

    Args:
        qualifiers: Caller's filter conditions
        columns: Table columns, in table order
        type_map: Local column name -> declared remote type ("date",
            "dateTime", ...). Selects the date literal format.

    Returns:
        Clauses joined with " AND ", or "" when nothing applies. Qualifiers
        on unknown columns, JSON columns and null values produce nothing.
    """
    type_map = type_map or {}
    by_column = group_by_column(qualifiers)
    clauses: List[str] = []

    for column in columns:
        for qual in by_column.get(column.name, ()):
            if qual.value is None:
                continue
            clause = _clause(column, qual, type_map)
            if clause:
                clauses.append(clause)

    return " AND ".join(clauses)
