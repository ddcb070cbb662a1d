"""Cache module - session storage and single-flight memoization."""

from core.cache.session_store import (
    SessionStore,
    InMemorySessionStore,
)
from core.cache.single_flight import SingleFlight

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "SingleFlight",
]
