"""Process-local credential cache in front of identity resolution.

Maps identifiers (user id, email, phone, provider id) to User snapshots
with a bounded TTL and a bounded size. Every mutation of a user must
invalidate all of its aliases; the TTL only bounds staleness across
processes, which never see each other's invalidations.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import logfire

from canon.domain.model import User
from canon.domain.value import UserId


@dataclass(frozen=True)
class CacheEntry:
    """A cached User snapshot and its expiry on the cache clock."""

    user: User
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CredentialCache:
    """Bounded TTL cache of identifier -> User, safe across threads.

    A reverse index (user id -> keys) lets every key pointing at a user be
    dropped in one call. When disabled, reads miss and writes are no-ops.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1000,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize cache.

        Args:
            ttl_seconds: Default lifetime of an entry
            max_entries: Size bound; the oldest insertion is evicted first
            enabled: When False every call is a miss or a no-op
            clock: Monotonic time source (injectable for tests)
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.enabled = enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._keys_by_user: dict[UserId, set[str]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._closed = False

    def get(self, identifier: str) -> User | None:
        """Return the cached user, or None on a miss or an expired entry."""
        if not self.enabled or not identifier:
            return None

        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                self._remove(identifier)
                self._misses += 1
                return None
            self._hits += 1
            return entry.user

    def put(self, identifier: str, user: User, ttl: float | None = None) -> None:
        """Cache ``user`` under ``identifier``, replacing any previous entry."""
        if not self.enabled or not identifier or self._closed:
            return

        expires_at = self._clock() + (self.ttl_seconds if ttl is None else ttl)
        with self._lock:
            if identifier in self._entries:
                self._remove(identifier)
            while len(self._entries) >= self.max_entries:
                oldest = next(iter(self._entries))
                self._remove(oldest)
                self._evictions += 1
            self._entries[identifier] = CacheEntry(user=user, expires_at=expires_at)
            self._keys_by_user.setdefault(user.id, set()).add(identifier)

    def invalidate(self, identifier: str) -> None:
        """Drop a single key."""
        if not identifier:
            return
        with self._lock:
            self._remove(identifier)

    def invalidate_user(self, user: User | UserId, aliases: Iterable[str] = ()) -> int:
        """Drop every key that maps to ``user`` plus the given aliases.

        Args:
            user: User (or user id) whose entries must go
            aliases: Extra identifiers to drop, e.g. values from before a change

        Returns:
            Number of entries removed
        """
        user_id = user.id if isinstance(user, User) else user
        keys = {str(user_id), *(a for a in aliases if a)}
        if isinstance(user, User):
            keys |= user.aliases()

        with self._lock:
            keys |= self._keys_by_user.get(user_id, set())
            removed = sum(1 for key in keys if self._remove(key))

        if removed:
            logfire.debug(
                "Credential cache invalidated", user_id=str(user_id), removed=removed
            )
        return removed

    def invalidate_all(self) -> int:
        """Drop every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._keys_by_user.clear()
        logfire.info("Credential cache cleared", removed=removed)
        return removed

    def stats(self) -> dict[str, Any]:
        """Snapshot of cache counters for monitoring."""
        with self._lock:
            now = self._clock()
            expired = sum(1 for e in self._entries.values() if e.is_expired(now))
            return {
                "enabled": self.enabled,
                "total_entries": len(self._entries),
                "expired_entries": expired,
                "active_entries": len(self._entries) - expired,
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def close(self) -> None:
        """Release all entries; later puts are ignored."""
        self.invalidate_all()
        self._closed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _remove(self, key: str) -> bool:
        # Caller holds the lock
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        keys = self._keys_by_user.get(entry.user.id)
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._keys_by_user[entry.user.id]
        return True


class DeferredInvalidations:
    """Request-scoped record of invalidations, replayed once the transaction ends.

    Dropping keys mid-request is not enough on its own: until the writer
    commits, a concurrent request still reads the old row and can cache it
    again. ``flush`` runs after commit (or rollback) and drops those keys a
    second time.
    """

    def __init__(self, cache: CredentialCache) -> None:
        """Initialize the collector.

        Args:
            cache: Process-wide credential cache
        """
        self.cache = cache
        self._pending: dict[UserId, set[str]] = {}

    def invalidate_user(self, user_id: UserId, aliases: Iterable[str] = ()) -> int:
        """Invalidate now and remember the keys for ``flush``.

        Returns:
            Number of cache entries removed now
        """
        aliases = {alias for alias in aliases if alias}
        self._pending.setdefault(user_id, set()).update(aliases)
        return self.cache.invalidate_user(user_id, aliases)

    def flush(self) -> int:
        """Replay every recorded invalidation and forget them.

        Returns:
            Number of cache entries removed
        """
        pending, self._pending = self._pending, {}
        removed = sum(
            self.cache.invalidate_user(user_id, aliases)
            for user_id, aliases in pending.items()
        )
        if pending:
            logfire.debug(
                "Deferred invalidations flushed", users=len(pending), removed=removed
            )
        return removed

    def __len__(self) -> int:
        return len(self._pending)
