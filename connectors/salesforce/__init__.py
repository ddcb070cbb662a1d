"""Salesforce connector.

Exposes Salesforce object types as tables:
- SalesforceConnector: catalog, list and get operations
- SessionManager / SalesforceAuthenticator: authentication and session renewal
- ResilientExecutor: reads with one reconnect-and-retry on session expiry
- build_filter / SchemaDeriver: SOQL generation and schema derivation
"""

from connectors.salesforce.sf_auth import (
    SalesforceAuthenticator,
    TokenEndpointClient,
    select_auth_method,
)
from connectors.salesforce.sf_client import SalesforceTransport, is_session_expired, login_url
from connectors.salesforce.sf_config import SalesforceConfig
from connectors.salesforce.sf_connector import SalesforceConnector
from connectors.salesforce.sf_errors import (
    SalesforceError,
    SalesforceConfigurationError,
    SalesforceAuthenticationError,
    SalesforceCannotRefreshError,
    SalesforceApiError,
    SalesforceSessionExpiredError,
    SalesforceTransportError,
)
from connectors.salesforce.sf_executor import ResilientExecutor
from connectors.salesforce.sf_filters import build_filter
from connectors.salesforce.sf_models import AuthMethod, SalesforceSession
from connectors.salesforce.sf_naming import NamingConvention, to_local_name, to_remote_name
from connectors.salesforce.sf_schema import SchemaDeriver, merge_table_columns
from connectors.salesforce.sf_session import SessionManager

__all__ = [
    # Connector
    "SalesforceConnector",
    "SalesforceConfig",

    # Session / auth
    "SessionManager",
    "SalesforceAuthenticator",
    "TokenEndpointClient",
    "SalesforceSession",
    "AuthMethod",
    "select_auth_method",
    "login_url",

    # Transport / executor
    "SalesforceTransport",
    "ResilientExecutor",
    "is_session_expired",

    # Schema / filters
    "SchemaDeriver",
    "merge_table_columns",
    "build_filter",
    "NamingConvention",
    "to_local_name",
    "to_remote_name",

    # Errors
    "SalesforceError",
    "SalesforceConfigurationError",
    "SalesforceAuthenticationError",
    "SalesforceCannotRefreshError",
    "SalesforceApiError",
    "SalesforceSessionExpiredError",
    "SalesforceTransportError",
]
