"""Abstract CRM Connector Interface.

This module defines the abstract interface that all CRM connectors must implement.
It is intentionally CRM-agnostic - no Salesforce specifics here.

Connectors implement this interface to:
1. Connect and authenticate with their CRM
2. Expose remote object types as tables (TableSchema)
3. Stream rows of a table, pushing qualifiers down to the remote side
4. Fetch a single row by id

Key Design Principles:
- Hosts depend ONLY on this interface
- All methods return NORMALIZED objects (TableSchema, row dicts keyed by column name)
- CRM-specific implementations live in connector subfolders
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.models.quals import Qualifier
from core.models.schema import TableSchema


Row = Dict[str, Any]
EmitRow = Callable[[Row], Any]


# =============================================================================
# Enums
# =============================================================================

class CRMConnectionStatus(str, Enum):
    """Connection status to CRM system."""
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    AUTHENTICATING = "AUTHENTICATING"
    FAILED = "FAILED"


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class CRMConfig:
    """Configuration for a CRM connector.

    Generic configuration handed to create_connector(). `settings` is passed
    to the connector, which parses it into its own typed config.
    """
    connector_type: str                     # "salesforce", ...
    name: str = "default"                   # Connection name
    settings: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Abstract Connector Interface
# =============================================================================

class CRMConnector(ABC):
    """Abstract base class for CRM connectors.

    All CRM-specific connectors must implement this interface.

    Implementations:
    - connectors/salesforce/sf_connector.py
    """

    connector_type: str = ""

    def __init__(self):
        self._connection_status = CRMConnectionStatus.DISCONNECTED

    @classmethod
    @abstractmethod
    def from_crm_config(cls, config: CRMConfig) -> "CRMConnector":
        """Build the connector from generic configuration."""
        pass

    # =========================================================================
    # Connection Management
    # =========================================================================

    @abstractmethod
    async def connect(self) -> bool:
        """Establish connection to the CRM system.

        Returns:
            True if connection successful
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the CRM system."""
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """Test if the connection is valid and authenticated.

        Returns:
            True if connection is healthy
        """
        pass

    @property
    def connection_status(self) -> CRMConnectionStatus:
        """Get current connection status."""
        return self._connection_status

    # =========================================================================
    # Catalog
    # =========================================================================

    @abstractmethod
    async def table_schema(self, object_type: str) -> TableSchema:
        """Get the table definition for a remote object type."""
        pass

    @abstractmethod
    async def load_tables(self) -> Dict[str, TableSchema]:
        """Get every table this connection exposes, keyed by table name."""
        pass

    # =========================================================================
    # Reads
    # =========================================================================

    @abstractmethod
    async def list_objects(
        self,
        object_type: str,
        emit: EmitRow,
        columns: Optional[List[str]] = None,
        qualifiers: Sequence[Qualifier] = (),
        cancel_event: Optional[Any] = None,
    ) -> None:
        """Stream the rows of a table to `emit`.

        Args:
            object_type: Remote object type
            emit: Called once per row
            columns: Column names to fill; all columns when None
            qualifiers: Filters to push down
            cancel_event: Object with is_set(); stops streaming between pages
        """
        pass

    @abstractmethod
    async def get_object(
        self,
        object_type: str,
        record_id: str,
        columns: Optional[List[str]] = None,
    ) -> Optional[Row]:
        """Fetch one row by id, or None when it does not exist."""
        pass

    # -------------------------------------------------------------------------
    # Utilities
    # -------------------------------------------------------------------------

    def get_connector_name(self) -> str:
        """Get the name of this connector."""
        return self.connector_type


# =============================================================================
# Connector Factory
# =============================================================================

_connector_registry: Dict[str, type] = {}


def register_connector(connector_type: str):
    """Decorator to register a connector implementation."""
    def decorator(cls):
        cls.connector_type = connector_type
        _connector_registry[connector_type] = cls
        return cls
    return decorator


def create_connector(config: CRMConfig) -> CRMConnector:
    """Create a connector instance from configuration.

    Args:
        config: CRMConfig with connector_type specified

    Returns:
        Configured connector instance

    Raises:
        ValueError: If connector_type is not registered
    """
    connector_type = config.connector_type.lower()

    if connector_type not in _connector_registry:
        available = list(_connector_registry.keys())
        raise ValueError(
            f"Unknown connector type: {connector_type}. "
            f"Available: {available}"
        )

    connector_class = _connector_registry[connector_type]
    return connector_class.from_crm_config(config)


def list_available_connectors() -> List[str]:
    """List all registered connector types."""
    return list(_connector_registry.keys())
