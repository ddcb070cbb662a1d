"""Salesforce Session Manager.

Owns the authenticated session for one connection. The session lives in a
SessionStore keyed by the connection identity, so every connector built
from the same config shares one login per process.

Usage:
    manager = SessionManager(config)
    session = await manager.connect()            # cached after first call
    session = await manager.reconnect(session)   # after an expiry
"""

from typing import Optional

from connectors.salesforce.sf_auth import SalesforceAuthenticator
from connectors.salesforce.sf_config import SalesforceConfig
from connectors.salesforce.sf_errors import SalesforceCannotRefreshError
from connectors.salesforce.sf_models import AuthMethod, SalesforceSession
from core.cache.session_store import InMemorySessionStore, SessionStore
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics

logger = get_logger(__name__)


class SessionManager:
    """Creates, caches and renews sessions for one connection."""

    def __init__(
        self,
        config: SalesforceConfig,
        store: Optional[SessionStore] = None,
        authenticator: Optional[SalesforceAuthenticator] = None,
    ):
        """Initialize the manager.

        Args:
            config: Connection configuration
            store: Session store; the process-wide in-memory store by default
            authenticator: Authenticator; built from `config` by default
        """
        self.config = config
        self.store = store or InMemorySessionStore.shared()
        self.authenticator = authenticator or SalesforceAuthenticator(config)

    @property
    def identity(self) -> str:
        return self.config.identity

    async def connect(self) -> SalesforceSession:
        """Return the cached session, authenticating if there is none.

        Concurrent callers share one authentication. A failed
        authentication is not cached.
        """
        return await self.store.get_or_create(self.identity, self.authenticator.authenticate)

    async def current(self) -> Optional[SalesforceSession]:
        """The cached session, without authenticating."""
        return await self.store.get(self.identity)

    async def reconnect(self, stale: Optional[SalesforceSession] = None) -> SalesforceSession:
        """Drop the stale session and authenticate again.

        Args:
            stale: The session that was found to be invalid. If another
                caller has already replaced it, that replacement is reused
                instead of logging in a second time.

        Raises:
            SalesforceCannotRefreshError: The connection uses a static
                access token; no network call is made.
        """
        method = stale.auth_method if stale is not None else self.authenticator.method
        if method == AuthMethod.ACCESS_TOKEN:
            raise SalesforceCannotRefreshError(
                "Session expired and access_token auth cannot be refreshed; "
                "provide a new access_token or configure a renewable method",
                method=method.value,
            )

        with with_correlation(connection=self.config.name, auth_method=method.value):
            removed = await self.store.invalidate(self.identity, expected=stale)
            logger.info("Reconnecting", extra_fields={"invalidated": removed})
            get_metrics().record_reconnect()

        return await self.connect()

    async def close(self) -> None:
        """Forget this connection's session."""
        await self.store.invalidate(self.identity)
