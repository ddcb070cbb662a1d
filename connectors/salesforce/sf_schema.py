"""Schema derivation from Salesforce describe metadata.

Turns an sObject describe result into table columns, filterable key
columns and a local-name -> remote-type map, then merges the derived
columns with any static column definitions for the object.

Every derived table starts with a synthetic organization id column. Its
value is not a field of the object; it is looked up once per process from
the Organization object.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from connectors.salesforce.sf_executor import ResilientExecutor
from connectors.salesforce.sf_models import DescribeField, OrganizationInfo
from connectors.salesforce.sf_naming import (
    NamingConvention,
    is_custom_field,
    remote_column_name,
    to_local_name,
)
from core.cache.single_flight import SingleFlight
from core.models.schema import ColumnDescriptor, ColumnType, KeyColumn, operators_for
from core.observability.logging import get_logger, with_correlation

logger = get_logger(__name__)

ORGANIZATION_QUERY = "SELECT Id, Name, InstanceName, IsSandbox FROM Organization"
ORGANIZATION_ID_CACHE_KEY = "getOrganizationId"
ORGANIZATION_ID_COLUMNS = ("organization_id", "OrganizationId")
ORGANIZATION_ID_DESCRIPTION = "Unique identifier of the organization in Salesforce."

# soapType (last ":" segment) -> column type
SOAP_TYPE_MAP: Dict[str, ColumnType] = {
    "string": ColumnType.TEXT,
    "ID": ColumnType.IDENTIFIER,
    "time": ColumnType.TEXT,
    "date": ColumnType.DATE,
    "dateTime": ColumnType.DATETIME,
    "boolean": ColumnType.BOOLEAN,
    "double": ColumnType.DOUBLE,
    "int": ColumnType.INTEGER,
}


@dataclass(frozen=True)
class DerivedSchema:
    """Columns derived from one object's describe metadata."""
    object_type: str
    columns: List[ColumnDescriptor] = field(default_factory=list)
    key_columns: List[KeyColumn] = field(default_factory=list)
    type_map: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# Pure helpers
# =============================================================================

def soap_field_type(soap_type: str) -> str:
    """Strip the XML namespace: "xsd:dateTime" -> "dateTime"."""
    return soap_type.split(":")[-1]


def column_type_for(soap_type: str) -> ColumnType:
    """Column type for a soapType; anything unrecognised becomes JSON."""
    return SOAP_TYPE_MAP.get(soap_field_type(soap_type), ColumnType.JSON)


def organization_id_column(convention: NamingConvention) -> ColumnDescriptor:
    name = "OrganizationId" if convention == NamingConvention.API_NATIVE else "organization_id"
    return ColumnDescriptor(name=name, type=ColumnType.TEXT, description=ORGANIZATION_ID_DESCRIPTION)


def is_organization_id_column(name: str) -> bool:
    return name in ORGANIZATION_ID_COLUMNS


def key_columns_for(columns: Sequence[ColumnDescriptor]) -> List[KeyColumn]:
    """Optional key columns for every filterable column, in column order."""
    keys = []
    for col in columns:
        if is_organization_id_column(col.name):
            continue
        operators = operators_for(col.type)
        if operators:
            keys.append(KeyColumn(name=col.name, operators=operators))
    return keys


def derive_columns(
    object_type: str,
    fields: Sequence[DescribeField],
    convention: NamingConvention = NamingConvention.SNAKE_CASE,
) -> DerivedSchema:
    """Build columns from describe fields.

    Fields without a name or soapType are skipped, and so are the
    components of compound fields (BillingCity of BillingAddress); the
    compound field itself is kept. The organization id column comes first,
    the rest keep describe order.
    """
    columns = [organization_id_column(convention)]
    type_map: Dict[str, str] = {}

    for f in fields:
        if not f.name:
            continue
        if f.is_compound_shadow:
            continue
        if not f.soap_type:
            continue

        local_name = to_local_name(f.name, convention)
        columns.append(ColumnDescriptor(
            name=local_name,
            type=column_type_for(f.soap_type),
            description=f"{f.label or f.name}.",
            is_custom=f.custom or is_custom_field(f.name),
            remote_name=f.name,
        ))
        type_map[local_name] = soap_field_type(f.soap_type)

    return DerivedSchema(
        object_type=object_type,
        columns=columns,
        key_columns=key_columns_for(columns),
        type_map=type_map,
    )


def merge_table_columns(
    static_columns: Sequence[ColumnDescriptor],
    derived_columns: Sequence[ColumnDescriptor],
    convention: NamingConvention = NamingConvention.SNAKE_CASE,
) -> List[ColumnDescriptor]:
    """Combine static and derived columns.

    API-native naming with derived columns: derived only. Otherwise static
    columns first, then derived columns whose name is not taken yet. No
    derived columns (metadata unavailable): static only.
    """
    if convention == NamingConvention.API_NATIVE and derived_columns:
        return list(derived_columns)

    columns = list(static_columns)
    seen = {col.name for col in columns}
    for col in derived_columns:
        if col.name in seen:
            continue
        seen.add(col.name)
        columns.append(col)
    return columns


def key_column_name(convention: NamingConvention, derived_columns: Sequence[ColumnDescriptor]) -> str:
    """Name of the record id column for a table."""
    if convention == NamingConvention.API_NATIVE and derived_columns:
        return "Id"
    return "id"


def generate_query(columns: Sequence[ColumnDescriptor], object_type: str) -> str:
    """SELECT every column's remote field, except the organization id."""
    fields = [
        remote_column_name(col)
        for col in columns
        if not is_organization_id_column(col.name)
    ]
    return f"SELECT {', '.join(fields)} FROM {object_type}"


def field_value(record: Mapping[str, Any], column: ColumnDescriptor) -> Any:
    """Value of a column in a raw record; None when the field is absent."""
    return record.get(remote_column_name(column))


# =============================================================================
# Deriver
# =============================================================================

class SchemaDeriver:
    """Derives table schemas through the resilient executor.

    Usage:
        deriver = SchemaDeriver(executor, NamingConvention.SNAKE_CASE)
        schema = await deriver.derive("Account")
        org_id = await deriver.organization_id()
    """

    def __init__(
        self,
        executor: ResilientExecutor,
        convention: NamingConvention = NamingConvention.SNAKE_CASE,
        memo: Optional[SingleFlight] = None,
    ):
        self.executor = executor
        self.convention = convention
        self.memo = memo or SingleFlight.shared()

    async def derive(self, object_type: str) -> Optional[DerivedSchema]:
        """Describe `object_type` and derive its columns.

        Returns:
            The derived schema, or None when the object type does not exist
        """
        with with_correlation(object_type=object_type, operation="describe"):
            metadata = await self.executor.describe(object_type)
            if metadata is None:
                logger.warning("Object type not present in Salesforce")
                return None

            derived = derive_columns(object_type, metadata.fields, self.convention)
            logger.debug("Schema derived", extra_fields={"columns": len(derived.columns)})
            return derived

    async def organization_id(self) -> str:
        """Organization id, fetched at most once per process.

        Concurrent first callers share one query. A failed query is not
        cached. An org that returns no rows yields "".
        """
        return await self.memo.do(ORGANIZATION_ID_CACHE_KEY, self._fetch_organization_id)

    async def _fetch_organization_id(self) -> str:
        records = await self.executor.query_all(ORGANIZATION_QUERY, object_type="Organization")
        if not records:
            return ""
        org = OrganizationInfo.model_validate(records[0])
        logger.debug("Organization resolved", extra_fields={"instance": org.instance_name})
        return org.id
