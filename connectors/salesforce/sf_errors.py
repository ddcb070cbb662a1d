"""Salesforce connector exceptions.

Hierarchy:
    SalesforceError
    ├── SalesforceConfigurationError   missing/invalid credential fields
    ├── SalesforceAuthenticationError  remote rejected the credentials
    │   └── SalesforceCannotRefreshError
    ├── SalesforceApiError             remote rejected a request
    │   └── SalesforceSessionExpiredError
    └── SalesforceTransportError       network / malformed response

NotFound is not an exception: lookups return None.
"""


class SalesforceError(Exception):
    """Base exception for the Salesforce connector."""
    pass


class SalesforceConfigurationError(SalesforceError):
    """Connection configuration is incomplete or inconsistent."""
    pass


class SalesforceAuthenticationError(SalesforceError):
    """Authentication was rejected by Salesforce."""
    def __init__(self, message: str, method: str = ""):
        super().__init__(message)
        self.method = method


class SalesforceCannotRefreshError(SalesforceAuthenticationError):
    """The session cannot be renewed with the configured credentials.

    Raised for static access tokens: there is nothing to exchange for a
    new one.
    """
    pass


class SalesforceApiError(SalesforceError):
    """Salesforce rejected an API request."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SalesforceSessionExpiredError(SalesforceApiError):
    """Session is no longer valid (INVALID_SESSION_ID / 401)."""
    def __init__(self, message: str = "Session expired or invalid", status_code: int = 401, response_body: str = ""):
        super().__init__(message, status_code, response_body)


class SalesforceTransportError(SalesforceError):
    """Network failure or unparseable response."""
    pass
