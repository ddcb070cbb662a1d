"""Shared test doubles for the Salesforce connector tests.

FakeTransport replays scripted outcomes (a value or an exception) per
method, and records every call. FakeAuthenticator hands out a new session
bound to the next scripted transport on each authenticate() call.
"""

from typing import Any, Dict, List, Optional

import pytest

from connectors.salesforce.sf_config import SalesforceConfig
from connectors.salesforce.sf_models import AuthMethod, QueryPage, SalesforceSession
from connectors.salesforce.sf_session import SessionManager
from core.cache.session_store import InMemorySessionStore
from core.cache.single_flight import SingleFlight


def page(records: List[Dict[str, Any]], cursor: Optional[str] = None) -> QueryPage:
    """Build a query page; done unless a cursor is given."""
    return QueryPage(records=records, done=cursor is None, total_size=len(records), next_cursor=cursor)


class FakeTransport:
    """Scripted stand-in for SalesforceTransport."""

    def __init__(self, name: str = "transport", **script):
        self.name = name
        self.script = {
            "query": list(script.get("query", [])),
            "query_more": list(script.get("query_more", [])),
            "get": list(script.get("get", [])),
            "describe": list(script.get("describe", [])),
        }
        self.calls = []

    async def _next(self, method: str, *args):
        self.calls.append((method,) + args)
        if not self.script[method]:
            raise AssertionError(f"{self.name}: unexpected {method}{args}")
        outcome = self.script[method].pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def query(self, soql: str):
        return await self._next("query", soql)

    async def query_more(self, cursor: str):
        return await self._next("query_more", cursor)

    async def get(self, object_type: str, record_id: str):
        return await self._next("get", object_type, record_id)

    async def describe(self, object_type: str):
        return await self._next("describe", object_type)


class FakeAuthenticator:
    """Returns a fresh session per call, bound to the next transport."""

    def __init__(self, transports: List[FakeTransport], method: AuthMethod = AuthMethod.PASSWORD):
        self.transports = list(transports)
        self.method = method
        self.calls = 0

    async def authenticate(self) -> SalesforceSession:
        self.calls += 1
        transport = self.transports.pop(0)
        return SalesforceSession(
            access_token=f"token-{self.calls}",
            instance_url="https://acme.my.salesforce.com",
            api_version="59.0",
            client_id="sfql",
            auth_method=self.method,
            transport=transport,
        )


def make_manager(*transports: FakeTransport, method: AuthMethod = AuthMethod.PASSWORD):
    """SessionManager over a private store and a FakeAuthenticator."""
    config = SalesforceConfig(
        name="test",
        url="https://acme.my.salesforce.com",
        username="user@acme.com",
        password="secret",
    )
    auth = FakeAuthenticator(list(transports), method=method)
    manager = SessionManager(config, store=InMemorySessionStore(), authenticator=auth)
    return manager, auth


@pytest.fixture(autouse=True)
def reset_shared_caches():
    """Process-wide caches must not leak between tests (or event loops)."""
    InMemorySessionStore._shared = None
    SingleFlight._shared = None
    yield
    InMemorySessionStore._shared = None
    SingleFlight._shared = None
