"""Tri-state entity cache.

Each key is either absent, pending (a fetch for it is already in flight) or
present (bound to its fetched value). Entity managers consult the cache before
scheduling any read so that a key is never requested twice.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class _Pending:
    """Type of the ``PENDING`` sentinel."""

    _instance: "_Pending | None" = None

    def __new__(cls) -> "_Pending":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING"


# Sentinel value bound to a key whose fetch is in flight
PENDING: Any = _Pending()


class CacheState(Enum):
    """Logical state of a cache key."""

    ABSENT = "absent"
    PENDING = "pending"
    PRESENT = "present"


@dataclass(frozen=True)
class CacheEntry:
    """Result of a cache lookup."""

    key: str
    state: CacheState
    value: Any = None

    @property
    def is_absent(self) -> bool:
        return self.state is CacheState.ABSENT

    @property
    def is_pending(self) -> bool:
        return self.state is CacheState.PENDING

    @property
    def is_present(self) -> bool:
        return self.state is CacheState.PRESENT


@dataclass
class CacheStats:
    """Statistics for cache monitoring."""

    hits: int = 0
    misses: int = 0
    pending: int = 0
    present: int = 0

    def as_dict(self) -> dict[str, int]:
        """Return stats as a dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "pending": self.pending,
            "present": self.present,
        }


class EntityCache:
    """
    In-memory key/value store with absent, pending and present states.

    The transition absent -> pending -> present is monotonic. Once a key is
    present its value is kept: a later ``add`` logs a warning and leaves the
    value untouched, unless ``allow_overwrite`` is set.

    Entries are never expired; they accumulate for the life of the owning
    manager. No locking is done: the cache is only touched from event loop
    callbacks.

    Args:
        logger: Logger receiving consistency warnings (defaults to module logger)
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._entries: dict[str, Any] = {}
        self._hits = 0
        self._misses = 0
        self.logger = logger or logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def state(self, key: str) -> CacheState:
        """Return the state of ``key`` without touching statistics."""
        if key not in self._entries:
            return CacheState.ABSENT
        if self._entries[key] is PENDING:
            return CacheState.PENDING
        return CacheState.PRESENT

    def peek(self, key: str) -> CacheEntry:
        """Like ``lookup`` but without counting a hit or a miss."""
        state = self.state(key)
        if state is CacheState.PRESENT:
            return CacheEntry(key, state, self._entries[key])
        return CacheEntry(key, state)

    def lookup(self, key: str) -> CacheEntry:
        """
        Look up a key.

        Args:
            key: Entity identifier

        Returns:
            CacheEntry carrying the state, and the value when present
        """
        entry = self.peek(key)
        if entry.is_present:
            self._hits += 1
        else:
            self._misses += 1
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value of a present key, ``default`` otherwise."""
        entry = self.lookup(key)
        return entry.value if entry.is_present else default

    def add(self, key: str, value: Any = PENDING, allow_overwrite: bool = False) -> CacheState:
        """
        Insert a value, or mark a key as pending.

        - absent: direct insert (``add(key)`` primes the key as pending)
        - pending: normal "fetch completed" transition, always succeeds
        - present: no-op with a warning, unless ``allow_overwrite`` is set

        Args:
            key: Entity identifier
            value: Fetched value, or ``PENDING``
            allow_overwrite: Replace a present value

        Returns:
            The state of the key after the call
        """
        current = self.state(key)

        if current is CacheState.PRESENT and not allow_overwrite:
            self.logger.warning("Cache key %r already resolved, keeping existing value", key)
            return current

        if current is CacheState.PRESENT and value is PENDING:
            self.logger.warning("Cannot mark resolved cache key %r as pending", key)
            return current

        self._entries[key] = value
        return self.state(key)

    def remove(self, key: str) -> None:
        """Remove a key. Does nothing if the key does not exist."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def invalidate(self, keys: Iterable[str] | None = None) -> int:
        """
        Drop resolved values so that the next read fetches them again.

        Pending keys are kept: their fetch is still in flight.

        Args:
            keys: Keys to drop (None drops every resolved key)

        Returns:
            Number of keys dropped
        """
        candidates = list(self._entries) if keys is None else list(keys)
        dropped = 0
        for key in candidates:
            if self.state(key) is CacheState.PRESENT:
                del self._entries[key]
                dropped += 1
        return dropped

    def pending_keys(self) -> list[str]:
        """Keys whose fetch is in flight."""
        return [key for key, value in self._entries.items() if value is PENDING]

    def get_stats(self) -> CacheStats:
        """
        Get cache statistics.

        Returns:
            CacheStats with lookup hits/misses and per-state entry counts
        """
        pending = sum(1 for value in self._entries.values() if value is PENDING)
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            pending=pending,
            present=len(self._entries) - pending,
        )
