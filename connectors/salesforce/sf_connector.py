"""Salesforce CRM Connector.

Implements the CRMConnector interface for Salesforce: every object type is
exposed as a table whose columns come from describe metadata merged with
static definitions for the standard objects.
"""

import asyncio
import inspect
from typing import Any, Dict, List, Optional, Sequence

from connectors.crm_base import (
    CRMConfig,
    CRMConnectionStatus,
    CRMConnector,
    EmitRow,
    Row,
    register_connector,
)
from connectors.salesforce.sf_config import SalesforceConfig
from connectors.salesforce.sf_errors import (
    SalesforceApiError,
    SalesforceConfigurationError,
    SalesforceError,
)
from connectors.salesforce.sf_executor import ResilientExecutor
from connectors.salesforce.sf_filters import build_filter
from connectors.salesforce.sf_naming import NamingConvention, remote_column_name, to_local_name
from connectors.salesforce.sf_schema import (
    SchemaDeriver,
    field_value,
    generate_query,
    is_organization_id_column,
    key_column_name,
    key_columns_for,
    merge_table_columns,
)
from connectors.salesforce.sf_session import SessionManager
from connectors.salesforce.sf_tables import STATIC_TABLES, static_columns
from core.cache.single_flight import SingleFlight
from core.models.quals import Qualifier
from core.models.schema import ColumnDescriptor, TableSchema
from core.observability.logging import get_logger, with_correlation

logger = get_logger(__name__)

TABLE_PREFIX = "salesforce_"
HEALTH_CHECK_QUERY = "SELECT Id FROM Organization LIMIT 1"


@register_connector("salesforce")
class SalesforceConnector(CRMConnector):
    """Salesforce connector implementation.

    Required configuration: `url` plus one credential set (see sf_auth).

    Optional configuration:
    - objects: additional object types to expose (custom objects etc.)
    - naming_convention: "snake_case" (default) or "api_native"
    - api_version: REST API version (default "59.0")

    Usage:
        connector = SalesforceConnector(SalesforceConfig.from_env())
        await connector.connect()
        await connector.list_objects("Account", rows.append, qualifiers=[...])
    """

    def __init__(
        self,
        config: SalesforceConfig,
        sessions: Optional[SessionManager] = None,
        executor: Optional[ResilientExecutor] = None,
        memo: Optional[SingleFlight] = None,
    ):
        super().__init__()
        self.config = config
        self.sessions = sessions or SessionManager(config)
        self.executor = executor or ResilientExecutor(self.sessions)
        self.deriver = SchemaDeriver(self.executor, config.naming_convention, memo=memo)

        # Table schemas, derived once per object type for the connector lifetime
        self._schemas = SingleFlight()

    @classmethod
    def from_crm_config(cls, config: CRMConfig) -> "SalesforceConnector":
        settings = dict(config.settings)
        settings.setdefault("name", config.name)
        return cls(SalesforceConfig.from_dict(settings))

    @property
    def convention(self) -> NamingConvention:
        return self.config.naming_convention

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def connect(self) -> bool:
        """Authenticate (or reuse the cached session).

        Raises:
            SalesforceConfigurationError: The credentials are incomplete
        """
        self._connection_status = CRMConnectionStatus.AUTHENTICATING

        with with_correlation(connection=self.config.name, operation="connect"):
            try:
                await self.sessions.connect()
            except SalesforceConfigurationError:
                self._connection_status = CRMConnectionStatus.FAILED
                raise
            except SalesforceError as e:
                logger.error("Salesforce connection failed", extra_fields={"error": str(e)})
                self._connection_status = CRMConnectionStatus.FAILED
                return False

        self._connection_status = CRMConnectionStatus.CONNECTED
        return True

    async def disconnect(self) -> None:
        """Drop the cached session for this connection."""
        await self.sessions.close()
        self._connection_status = CRMConnectionStatus.DISCONNECTED

    async def test_connection(self) -> bool:
        """Run a one-row query as a health check."""
        try:
            await self.executor.query_all(HEALTH_CHECK_QUERY, object_type="Organization")
            return True
        except SalesforceError as e:
            logger.warning("Salesforce connection test failed", extra_fields={"error": str(e)})
            return False

    # =========================================================================
    # Catalog
    # =========================================================================

    def table_name(self, object_type: str) -> str:
        """Table name for an object type: "salesforce_account" or "Account"."""
        if self.convention == NamingConvention.API_NATIVE:
            return object_type
        return TABLE_PREFIX + to_local_name(object_type)

    def object_types(self) -> List[str]:
        """Standard objects followed by the configured ones, without repeats."""
        seen: Dict[str, None] = {}
        for object_type in list(STATIC_TABLES.keys()) + list(self.config.objects):
            seen.setdefault(object_type, None)
        return list(seen.keys())

    async def table_schema(self, object_type: str) -> TableSchema:
        """Table definition for an object type, derived once and cached.

        Raises:
            SalesforceApiError: The object type does not exist and has no
                static definition (status_code 404)
        """
        return await self._schemas.do(object_type, lambda: self._build_schema(object_type))

    async def _build_schema(self, object_type: str) -> TableSchema:
        derived = await self.deriver.derive(object_type)
        derived_columns = derived.columns if derived else []
        static = static_columns(object_type)

        if not derived_columns and not static:
            raise SalesforceApiError(
                f"Object type {object_type!r} not found in Salesforce", status_code=404
            )

        columns = merge_table_columns(static, derived_columns, self.convention)
        return TableSchema(
            object_type=object_type,
            table_name=self.table_name(object_type),
            columns=columns,
            key_columns=key_columns_for(columns),
            type_map=dict(derived.type_map) if derived else {},
            key_column_name=key_column_name(self.convention, derived_columns),
        )

    async def load_tables(self) -> Dict[str, TableSchema]:
        """Derive every exposed table concurrently.

        Configured object types that do not exist are logged and skipped;
        any other failure propagates.
        """
        object_types = self.object_types()
        results = await asyncio.gather(
            *(self._schema_or_none(object_type) for object_type in object_types)
        )
        return {schema.table_name: schema for schema in results if schema is not None}

    async def _schema_or_none(self, object_type: str) -> Optional[TableSchema]:
        try:
            return await self.table_schema(object_type)
        except SalesforceApiError as e:
            if e.status_code != 404:
                raise
            logger.warning("Skipping table", extra_fields={"object_type": object_type, "error": str(e)})
            return None

    # =========================================================================
    # Reads
    # =========================================================================

    def _query_columns(self, schema: TableSchema, selected: List[ColumnDescriptor]) -> List[ColumnDescriptor]:
        """Columns to SELECT; the id column stands in when only the org id was asked for."""
        remote = [col for col in selected if not is_organization_id_column(col.name)]
        if remote:
            return remote
        key = schema.column(schema.key_column_name)
        return [key] if key is not None else [ColumnDescriptor(name=schema.key_column_name, remote_name="Id")]

    async def _row_builder(self, selected: List[ColumnDescriptor]):
        org_id = None
        if any(is_organization_id_column(col.name) for col in selected):
            org_id = await self.deriver.organization_id()

        def build(record: Dict[str, Any]) -> Row:
            return {
                col.name: org_id if is_organization_id_column(col.name) else field_value(record, col)
                for col in selected
            }
        return build

    async def list_objects(
        self,
        object_type: str,
        emit: EmitRow,
        columns: Optional[List[str]] = None,
        qualifiers: Sequence[Qualifier] = (),
        cancel_event: Optional[Any] = None,
    ) -> None:
        """Stream rows of `object_type`, pushing qualifiers down as SOQL filters."""
        schema = await self.table_schema(object_type)

        with with_correlation(
            connection=self.config.name,
            object_type=object_type,
            table=schema.table_name,
            operation="list",
        ):
            selected = schema.select(columns)
            soql = generate_query(self._query_columns(schema, selected), object_type)
            where = build_filter(qualifiers, schema.columns, schema.type_map)
            if where:
                soql = f"{soql} WHERE {where}"
            logger.debug("Listing records", extra_fields={"soql": soql})

            build = await self._row_builder(selected)

            async def on_record(record: Dict[str, Any]) -> None:
                result = emit(build(record))
                if inspect.isawaitable(result):
                    await result

            await self.executor.query_pages(soql, on_record, cancel_event, object_type=object_type)

    async def get_object(
        self,
        object_type: str,
        record_id: str,
        columns: Optional[List[str]] = None,
    ) -> Optional[Row]:
        """Fetch one row by id, or None when it does not exist."""
        schema = await self.table_schema(object_type)

        with with_correlation(
            connection=self.config.name,
            object_type=object_type,
            table=schema.table_name,
            operation="get",
        ):
            key = schema.column(schema.key_column_name)
            key_field = remote_column_name(key) if key is not None else "Id"

            record = await self.executor.get_by_id(object_type, record_id, key_field=key_field)
            if record is None:
                logger.debug("Record not found", extra_fields={"id": record_id})
                return None

            build = await self._row_builder(schema.select(columns))
            return build(record)
