"""CRM Connectors - Pluggable CRM system integrations.

This package contains the abstract CRM interface and concrete implementations
for specific CRM systems (Salesforce, ...).

Core table and qualifier models are CRM-neutral. This package handles:
- CRM-specific authentication
- Schema derivation (remote metadata -> TableSchema)
- Filter push-down (Qualifier -> remote query language)
- API communication

Key Design Principle:
- Hosts depend ONLY on the CRMConnector interface
- All methods return NORMALIZED types (TableSchema, row dicts)

To add a new CRM:
1. Create a new folder (e.g., hubspot/)
2. Implement CRMConnector interface
3. Register using @register_connector decorator
"""

from connectors.crm_base import (
    # Core interface
    CRMConnector,
    CRMConfig,
    CRMConnectionStatus,

    # Factory functions
    create_connector,
    register_connector,
    list_available_connectors,
)

# Importing the implementation registers it
import connectors.salesforce  # noqa: F401

__all__ = [
    # Core interface
    "CRMConnector",
    "CRMConfig",
    "CRMConnectionStatus",

    # Factory
    "create_connector",
    "register_connector",
    "list_available_connectors",
]
