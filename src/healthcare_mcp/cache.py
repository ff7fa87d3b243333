# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Process-wide TTL cache for tool results.

One :class:`TTLCache` is created by the server and handed to the dispatcher,
so identical upstream lookups made by any session within the TTL window are
served from memory.  Keys are derived from the operation name and a canonical
encoding of the arguments, so ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}``
share a slot.

Expiry is lazy: an entry past its TTL is dropped the next time it is read.
:meth:`TTLCache.sweep` (run periodically by the server) and the optional
``max_entries`` bound keep write-only keys from accumulating.

The cache is used from a single event loop.  ``get``/``set`` never suspend,
so each call is atomic with respect to other tasks and readers see either the
old or the new value, never a partial one.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
import hashlib
import json
import time
from typing import Any, Final

import anyio

from .utils import get_logger


DEFAULT_TTL: Final[float] = 86400.0


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final[Any] = _Missing()
"""Sentinel returned by :meth:`TTLCache.get` for absent or expired keys."""


@dataclass(slots=True)
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """In-memory key/value store with a uniform time-to-live.

    Args:
        ttl: Seconds an entry stays visible after it was stored.
        max_entries: Upper bound on stored entries; ``None`` or ``0`` means
            unbounded.  When full, expired entries are swept first and then
            the oldest write is evicted.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._ttl = float(ttl)
        self._max_entries = max_entries or None
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, anyio.Lock] = {}
        self._logger = get_logger("healthcare_mcp.cache")
        self.hits = 0
        self.misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    @staticmethod
    def key(operation: str, arguments: Mapping[str, Any] | None = None) -> str:
        """Derive the cache key for *operation* called with *arguments*."""
        canonical = json.dumps(
            dict(arguments or {}), sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
        )
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"{operation}:{digest}"

    def get(self, key: str, default: Any = MISSING) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default
        if self._expired(entry, self._clock()):
            del self._entries[key]
            self.misses += 1
            return default
        self.hits += 1
        return entry.value

    def set(self, key: str, value: Any) -> None:
        now = self._clock()
        # Re-insert so dict order tracks write order for oldest-first eviction.
        self._entries.pop(key, None)
        if self._max_entries is not None and len(self._entries) >= self._max_entries:
            self._make_room(now)
        self._entries[key] = CacheEntry(value=value, stored_at=now)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Evict every expired entry and return how many were removed."""
        now = self._clock()
        stale = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    async def fetch(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for *key*, computing it with *factory* on a miss.

        Concurrent misses for the same key wait on a per-key lock so the
        factory runs once.  Exceptions from the factory propagate and nothing
        is cached.
        """
        value = self.get(key)
        if value is not MISSING:
            return value

        lock = self._locks.setdefault(key, anyio.Lock())
        try:
            async with lock:
                value = self.get(key)
                if value is not MISSING:
                    return value
                value = await factory()
                self.set(key, value)
                return value
        finally:
            if not lock.locked() and lock.statistics().tasks_waiting == 0:
                self._locks.pop(key, None)

    async def run_sweeper(self, interval: float) -> None:
        """Sweep expired entries every *interval* seconds until cancelled."""
        while True:
            await anyio.sleep(interval)
            removed = self.sweep()
            if removed:
                self._logger.debug("Evicted %d expired cache entries (%d remain)", removed, len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key) if isinstance(key, str) else None
        return entry is not None and not self._expired(entry, self._clock())

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self._ttl

    def _make_room(self, now: float) -> None:
        stale = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in stale:
            del self._entries[key]
        while len(self._entries) >= self._max_entries:  # type: ignore[operator]
            oldest = next(iter(self._entries))
            del self._entries[oldest]


__all__ = ["DEFAULT_TTL", "MISSING", "CacheEntry", "TTLCache"]
