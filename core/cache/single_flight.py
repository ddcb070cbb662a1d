"""Single-flight memoization for async lookups.

Concurrent callers asking for the same key share one in-flight
computation. A successful result is cached for the lifetime of the
memo; a failure is not, so the next caller computes again.

Usage:
    memo = SingleFlight.shared()
    org_id = await memo.do("organization_id", fetch_organization_id)
"""

import asyncio
import threading
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional


class SingleFlight:
    """Keyed memo with at most one computation in flight per key."""

    _shared: Optional["SingleFlight"] = None
    _shared_lock = threading.Lock()

    def __init__(self):
        self._values: Dict[Hashable, Any] = {}
        self._inflight: Dict[Hashable, asyncio.Future] = {}

    @classmethod
    def shared(cls) -> "SingleFlight":
        """Get the process-wide memo."""
        if cls._shared is None:
            with cls._shared_lock:
                if cls._shared is None:
                    cls._shared = cls()
        return cls._shared

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Return the memoized value for `key`, computing it with `fn` once.

        Args:
            key: Cache key
            fn: Coroutine factory producing the value

        Returns:
            The cached or freshly computed value

        Raises:
            Whatever `fn` raised. Every caller waiting on that computation
            sees the same error.
        """
        if key in self._values:
            return self._values[key]

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, fn))
            self._inflight[key] = task

        # Shielded so one cancelled waiter does not cancel the shared call
        return await asyncio.shield(task)

    async def _run(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await fn()
            self._values[key] = value
            return value
        finally:
            self._inflight.pop(key, None)

    def peek(self, key: Hashable) -> Optional[Any]:
        """Cached value for `key` without computing it."""
        return self._values.get(key)

    def forget(self, key: Hashable) -> None:
        """Drop a cached value so the next call recomputes it."""
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()
        self._inflight.clear()
