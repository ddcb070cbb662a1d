"""Resilient Query/Get Executor.

Wraps the remote read primitives (paginated SOQL query, point lookup,
describe) with session-expiry detection and exactly one
re-authentication retry per request. Errors that are not session expiry
propagate unchanged, and so do errors raised by the reconnect itself.
"""

import inspect
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from connectors.salesforce.sf_client import is_session_expired
from connectors.salesforce.sf_errors import SalesforceSessionExpiredError
from connectors.salesforce.sf_models import DescribeResult, SalesforceSession
from connectors.salesforce.sf_session import SessionManager
from core.observability.logging import get_logger
from core.observability.metrics import get_metrics

logger = get_logger(__name__)

T = TypeVar("T")

Record = Dict[str, Any]
Emit = Callable[[Record], Any]
ExpiryPredicate = Callable[[BaseException], bool]
Operation = Callable[[Any], Awaitable[T]]


def probe_query(object_type: str, record_id: str, key_field: str = "Id") -> str:
    """Minimal query that only succeeds if the session is still valid."""
    return f"SELECT {key_field} FROM {object_type} WHERE {key_field} = '{record_id}' LIMIT 1"


class ResilientExecutor:
    """Runs remote reads through the current session, reconnecting on expiry.

    Usage:
        executor = ResilientExecutor(SessionManager(config))
        await executor.query_pages("SELECT Id FROM Account", rows.append)
        record = await executor.get_by_id("Account", "001000000000001AAA")
    """

    def __init__(self, sessions: SessionManager, is_expired: ExpiryPredicate = is_session_expired):
        """Initialize the executor.

        Args:
            sessions: Session manager supplying and renewing sessions
            is_expired: Classifies an error as session expiry
        """
        self.sessions = sessions
        self.is_expired = is_expired

    async def _call(self, session: SalesforceSession, op: Operation) -> Tuple[T, SalesforceSession]:
        """Run `op` against the session's transport with one expiry retry.

        Returns:
            (result, session) where session is the one that produced the
            result, so callers can keep using it.

        Raises:
            SalesforceSessionExpiredError: The retry also hit an expired session
        """
        try:
            return await op(session.transport), session
        except Exception as e:
            if not self.is_expired(e):
                get_metrics().record_read_failure()
                raise
            logger.info("Session expired, reconnecting", extra_fields={"error": str(e)})

        session = await self.sessions.reconnect(session)
        return await self._retry(session, op), session

    async def _retry(self, session: SalesforceSession, op: Operation) -> T:
        try:
            return await op(session.transport)
        except Exception as e:
            get_metrics().record_read_failure()
            if isinstance(e, SalesforceSessionExpiredError):
                raise
            if self.is_expired(e):
                raise SalesforceSessionExpiredError(
                    f"Session expired again after reconnect: {e}"
                ) from e
            raise

    # =========================================================================
    # Paginated query
    # =========================================================================

    async def query_pages(
        self,
        soql: str,
        emit: Emit,
        cancel_event: Optional[Any] = None,
        object_type: Optional[str] = None,
    ) -> SalesforceSession:
        """Run a SOQL query and emit every record, page by page.

        Pages are fetched strictly one after another. A page's records are
        all emitted before the next page is requested, so a retry after a
        reconnect never re-emits earlier pages.

        Args:
            soql: Query text
            emit: Called with each record; may be a coroutine function
            cancel_event: Object with is_set(); checked between pages
            object_type: Used for metrics only

        Returns:
            The session in use when the query finished
        """
        metrics = get_metrics()
        metrics.record_query(object_type)

        session = await self.sessions.connect()
        started = time.monotonic()
        page, session = await self._call(session, lambda t: t.query(soql))
        page_number = 1

        while True:
            metrics.record_page(len(page.records), object_type)
            logger.debug(
                "Page fetched",
                extra_fields={"page": page_number, "records": len(page.records), "done": page.done},
            )
            for record in page.records:
                result = emit(record)
                if inspect.isawaitable(result):
                    await result

            if page.done or not page.next_cursor:
                break
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Query cancelled", extra_fields={"pages": page_number})
                break

            cursor = page.next_cursor
            page, session = await self._call(session, lambda t: t.query_more(cursor))
            page_number += 1

        metrics.record_processing_time("query", (time.monotonic() - started) * 1000)
        return session

    async def query_all(self, soql: str, object_type: Optional[str] = None) -> List[Record]:
        """Collect every record of a query into a list."""
        records: List[Record] = []
        await self.query_pages(soql, records.append, object_type=object_type)
        return records

    # =========================================================================
    # Point lookup
    # =========================================================================

    async def get_by_id(self, object_type: str, record_id: str, key_field: str = "Id") -> Optional[Record]:
        """Fetch one record by id.

        The lookup primitive cannot tell "no such record" from "session
        expired". When it comes back empty, a probe query is issued through
        the same session:
        - probe succeeds: the record does not exist
        - probe fails with another error: treated as not found
        - probe fails with an expired session: reconnect and retry the
          lookup once, returning whatever that retry yields

        Returns:
            The record, or None when not found
        """
        metrics = get_metrics()
        metrics.record_lookup(object_type)
        started = time.monotonic()

        def lookup(t):
            return t.get(object_type, record_id)

        session = await self.sessions.connect()
        try:
            record = await lookup(session.transport)
        except Exception as e:
            if not self.is_expired(e):
                raise
            logger.info("Session expired, reconnecting", extra_fields={"error": str(e)})
            session = await self.sessions.reconnect(session)
            # The one retry is spent; its result is final
            record = await self._retry(session, lookup)
        else:
            if record is None:
                record = await self._disambiguate(session, object_type, record_id, key_field, lookup)

        metrics.record_processing_time("get", (time.monotonic() - started) * 1000)
        return record

    async def _disambiguate(
        self,
        session: SalesforceSession,
        object_type: str,
        record_id: str,
        key_field: str,
        lookup: Operation,
    ) -> Optional[Record]:
        get_metrics().record_probe()
        probe = probe_query(object_type, record_id, key_field)
        try:
            await session.transport.query(probe)
            return None
        except Exception as e:
            if not self.is_expired(e):
                logger.debug("Probe failed, treating record as not found", extra_fields={"error": str(e)})
                return None
            logger.info("Probe hit an expired session, reconnecting", extra_fields={"error": str(e)})

        session = await self.sessions.reconnect(session)
        return await self._retry(session, lookup)

    # =========================================================================
    # Describe
    # =========================================================================

    async def describe(self, object_type: str) -> Optional[DescribeResult]:
        """Describe an object type. None when it does not exist."""
        session = await self.sessions.connect()
        started = time.monotonic()
        result, _ = await self._call(session, lambda t: t.describe(object_type))
        get_metrics().record_processing_time("describe", (time.monotonic() - started) * 1000)
        return result
