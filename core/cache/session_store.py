"""Authenticated session storage.

Holds at most one live session per connection identity:
- SessionStore: abstract interface (injectable)
- InMemorySessionStore: process-local store guarded by per-key locks

Sessions are never written to disk. A failed creation leaves the slot
empty so the next caller tries again.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

T = TypeVar("T")


class SessionStore(ABC):
    """Abstract base class for session storage keyed by connection identity."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached session for `key`, if any."""
        pass

    @abstractmethod
    async def get_or_create(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the cached session, creating it with `factory` if absent.

        Concurrent callers for the same key share one creation. If `factory`
        raises, nothing is cached and the error propagates.
        """
        pass

    @abstractmethod
    async def invalidate(self, key: str, expected: Optional[Any] = None) -> bool:
        """Drop the session for `key`.

        Args:
            key: Connection identity
            expected: When given, only drop the entry if it is this exact
                session. Another caller may already have replaced it.

        Returns:
            True if an entry was removed
        """
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        """List identities with a live session."""
        pass


class InMemorySessionStore(SessionStore):
    """In-memory session store.

    Usage:
        store = InMemorySessionStore.shared()
        session = await store.get_or_create("prod", authenticate)
        await store.invalidate("prod", expected=session)
    """

    _shared: Optional["InMemorySessionStore"] = None
    _shared_lock = threading.Lock()

    def __init__(self):
        self._sessions: Dict[str, Any] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._guard = threading.Lock()

    @classmethod
    def shared(cls) -> "InMemorySessionStore":
        """Get the process-wide store."""
        if cls._shared is None:
            with cls._shared_lock:
                if cls._shared is None:
                    cls._shared = cls()
        return cls._shared

    def _lock_for(self, key: str) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            return lock

    async def get(self, key: str) -> Optional[Any]:
        with self._guard:
            return self._sessions.get(key)

    async def get_or_create(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        cached = await self.get(key)
        if cached is not None:
            return cached

        async with self._lock_for(key):
            # Another caller may have finished while we waited
            cached = await self.get(key)
            if cached is not None:
                return cached

            session = await factory()
            with self._guard:
                self._sessions[key] = session
            return session

    async def invalidate(self, key: str, expected: Optional[Any] = None) -> bool:
        async with self._lock_for(key):
            with self._guard:
                current = self._sessions.get(key)
                if current is None:
                    return False
                if expected is not None and current is not expected:
                    return False
                del self._sessions[key]
                return True

    async def keys(self) -> List[str]:
        with self._guard:
            return list(self._sessions.keys())

    def clear(self) -> None:
        """Drop every session (used when tearing down a process or a test)."""
        with self._guard:
            self._sessions.clear()
            self._locks.clear()
