"""Column naming conventions.

Salesforce reports field names in UpperCamelCase (`CreatedById`), while
tables expose lower_snake_case columns (`created_by_id`) unless the
connection asks for API-native names. Custom fields (`__c`) keep their
remote spelling in both directions; only their case is folded locally.
"""

import re
from enum import Enum

from core.models.schema import ColumnDescriptor

CUSTOM_SUFFIX = "__c"

# Word boundaries: "aB" -> "a_B", "ABc" -> "A_Bc" (acronym followed by a word),
# "a2" -> "a_2" and "2B" -> "2_B" (digit runs stand alone)
_LOWER_UPPER = re.compile(r"([a-z])([A-Z])")
_ACRONYM_WORD = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LETTER_DIGIT = re.compile(r"([A-Za-z])([0-9])")
_DIGIT_LETTER = re.compile(r"([0-9])([A-Za-z])")


class NamingConvention(str, Enum):
    """How remote field names are exposed as column names."""
    SNAKE_CASE = "snake_case"
    API_NATIVE = "api_native"


def is_custom_field(name: str) -> bool:
    """True for organization-defined fields (suffix `__c`)."""
    return name.endswith(CUSTOM_SUFFIX)


def to_remote_name(local: str) -> str:
    """Convert a local column name to the remote field name.

    Custom fields are returned unchanged. Otherwise each `_`-separated
    segment gets an upper-cased first character and the rest is kept as is:

        created_by_id -> CreatedById
        Name          -> Name
    """
    if is_custom_field(local):
        return local
    return "".join(seg[:1].upper() + seg[1:] for seg in local.split("_"))


def remote_column_name(column: ColumnDescriptor) -> str:
    """Field name to use in SOQL for a column.

    Columns derived from describe metadata carry their exact remote name;
    static columns fall back to to_remote_name.
    """
    return column.remote_name or to_remote_name(column.name)


def to_local_name(remote: str, convention: NamingConvention = NamingConvention.SNAKE_CASE) -> str:
    """Convert a remote field name to a column name in `convention`.

    Args:
        remote: Field name as reported by describe (e.g. "CreatedByID")
        convention: Active naming convention

    Returns:
        The verbatim name under API_NATIVE, the lower-cased name for custom
        fields, else lower_snake_case with acronym runs kept together
        ("CreatedByID" -> "created_by_id") and digit runs split off
        ("Address2Street" -> "address_2_street").
    """
    if convention == NamingConvention.API_NATIVE:
        return remote
    if is_custom_field(remote):
        return remote.lower()

    snake = _ACRONYM_WORD.sub(r"\1_\2", remote)
    snake = _LOWER_UPPER.sub(r"\1_\2", snake)
    snake = _LETTER_DIGIT.sub(r"\1_\2", snake)
    snake = _DIGIT_LETTER.sub(r"\1_\2", snake)
    return snake.lower()
