"""Salesforce transport adapter.

Thin async wrapper around simple-salesforce. The library is synchronous,
so each call runs in a worker thread via asyncio.to_thread. Library
exceptions are translated into the connector's own hierarchy here and
nowhere else:

- SalesforceExpiredSession        -> SalesforceSessionExpiredError
- SalesforceResourceNotFound      -> None (get / describe)
- SalesforceAuthenticationFailed  -> SalesforceAuthenticationError
- other simple_salesforce errors  -> SalesforceApiError
- requests network errors         -> SalesforceTransportError
"""

import asyncio
import re
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar
from urllib.parse import urlparse

import requests
from simple_salesforce import Salesforce, SalesforceLogin
from simple_salesforce.exceptions import (
    SalesforceAuthenticationFailed,
    SalesforceError as SimpleSalesforceError,
    SalesforceExpiredSession,
    SalesforceResourceNotFound,
)

from connectors.salesforce.sf_errors import (
    SalesforceApiError,
    SalesforceAuthenticationError,
    SalesforceSessionExpiredError,
    SalesforceTransportError,
)
from connectors.salesforce.sf_models import DescribeResult, QueryPage
from core.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Substrings that identify an invalid session in an error text. The
# underlying client does not always raise a typed error for this.
SESSION_EXPIRED_MARKERS = (
    "INVALID_SESSION_ID",
    "Session expired",
    "401",
    "Unauthorized",
)

SALESFORCE_HOST_SUFFIX = ".salesforce.com"

PRODUCTION_LOGIN_URL = "https://login.salesforce.com"
SANDBOX_LOGIN_URL = "https://test.salesforce.com"

_SANDBOX_PATTERN = re.compile(r"(?i)(sandbox|[/.]cs\d+\.|test\.salesforce\.com)")


def is_session_expired(error: BaseException) -> bool:
    """Classify an error as "the session is no longer valid".

    True for SalesforceSessionExpiredError, or when the error text contains
    one of SESSION_EXPIRED_MARKERS. The text match is a heuristic: a
    non-session error whose message happens to contain "401" is also
    classified as expired, which costs at most one extra reconnect.
    """
    if isinstance(error, SalesforceSessionExpiredError):
        return True
    text = str(error)
    if isinstance(error, SalesforceApiError) and error.response_body:
        text = f"{text} {error.response_body}"
    return any(marker in text for marker in SESSION_EXPIRED_MARKERS)


def _strip_attributes(record: Dict[str, Any]) -> Dict[str, Any]:
    """Drop the `attributes` metadata key Salesforce adds to every record."""
    return {k: v for k, v in record.items() if k != "attributes"}


def _translate(exc: Exception) -> Exception:
    """Map a simple-salesforce / requests exception onto our hierarchy."""
    if isinstance(exc, SalesforceExpiredSession):
        return SalesforceSessionExpiredError(
            str(exc), status_code=exc.status or 401, response_body=str(exc.content or "")
        )
    if isinstance(exc, SalesforceAuthenticationFailed):
        return SalesforceAuthenticationError(f"{exc.code}: {exc.message}", method="password")
    if isinstance(exc, SimpleSalesforceError):
        return SalesforceApiError(
            str(exc), status_code=exc.status or 0, response_body=str(exc.content or "")
        )
    if isinstance(exc, requests.RequestException):
        return SalesforceTransportError(f"Request to Salesforce failed: {exc}")
    return exc


def login_url(instance_url: str) -> str:
    """OAuth login endpoint for an instance URL.

    Sandbox instances (".sandbox.", "csNN." hosts, test.salesforce.com)
    authenticate against test.salesforce.com; everything else against
    login.salesforce.com.
    """
    if _SANDBOX_PATTERN.search(instance_url):
        return SANDBOX_LOGIN_URL
    return PRODUCTION_LOGIN_URL


def login_domain(url: str) -> str:
    """SOAP login domain for simple-salesforce derived from an instance URL.

    "https://acme.my.salesforce.com" -> "acme.my". Hosts outside
    salesforce.com fall back to "test" for sandboxes and "login" otherwise.
    """
    host = urlparse(url).hostname or url
    if host.endswith(SALESFORCE_HOST_SUFFIX):
        return host[: -len(SALESFORCE_HOST_SUFFIX)]
    return "test" if login_url(url) == SANDBOX_LOGIN_URL else "login"


async def password_login(
    url: str,
    username: str,
    password: str,
    security_token: str,
    api_version: str,
    client_id: str,
) -> Tuple[str, str]:
    """SOAP username/password login.

    Returns:
        (session_id, instance_url)

    Raises:
        SalesforceAuthenticationError: Credentials rejected
        SalesforceTransportError: Network failure
    """
    def _login():
        return SalesforceLogin(
            username=username,
            password=password,
            security_token=security_token,
            domain=login_domain(url),
            sf_version=api_version,
            client_id=client_id,
        )

    try:
        session_id, sf_instance = await asyncio.to_thread(_login)
    except Exception as e:
        raise _translate(e) from e
    return session_id, f"https://{sf_instance}"


class SalesforceTransport:
    """Async facade over one simple_salesforce.Salesforce client.

    One transport is bound to one access token. A new session gets a new
    transport; the old one is simply dropped.

    Usage:
        transport = SalesforceTransport(instance_url, access_token, "59.0")
        page = await transport.query("SELECT Id FROM Account")
        while not page.done:
            page = await transport.query_more(page.next_cursor)
    """

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        api_version: str,
        client_id: Optional[str] = None,
        client: Optional[Salesforce] = None,
    ):
        self.instance_url = instance_url
        self.api_version = api_version
        self._client = client or Salesforce(
            instance_url=instance_url,
            session_id=access_token,
            version=api_version,
            client_id=client_id,
        )

    async def _run(self, fn: Callable[..., T], *args, **kwargs) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except Exception as e:
            translated = _translate(e)
            if translated is e:
                raise
            raise translated from e

    async def query(self, soql: str) -> QueryPage:
        """Run a SOQL query and return its first page."""
        result = await self._run(self._client.query, soql)
        return self._page(result)

    async def query_more(self, cursor: str) -> QueryPage:
        """Fetch the page a nextRecordsUrl points to."""
        result = await self._run(self._client.query_more, cursor, identifier_is_url=True)
        return self._page(result)

    async def get(self, object_type: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one record by id. None when Salesforce reports 404."""
        sobject = getattr(self._client, object_type)
        try:
            record = await self._run(sobject.get, record_id)
        except SalesforceApiError as e:
            if isinstance(e.__cause__, SalesforceResourceNotFound):
                return None
            raise
        if not record:
            return None
        return _strip_attributes(dict(record))

    async def describe(self, object_type: str) -> Optional[DescribeResult]:
        """Describe an object type. None when the type does not exist."""
        sobject = getattr(self._client, object_type)
        try:
            metadata = await self._run(sobject.describe)
        except SalesforceApiError as e:
            if isinstance(e.__cause__, SalesforceResourceNotFound):
                return None
            raise
        if not metadata:
            return None
        return DescribeResult.model_validate(dict(metadata))

    @staticmethod
    def _page(result: Optional[Dict[str, Any]]) -> QueryPage:
        if result is None:
            raise SalesforceTransportError("Empty query response")
        data = dict(result)
        data["records"] = [_strip_attributes(dict(r)) for r in data.get("records") or []]
        return QueryPage.model_validate(data)
