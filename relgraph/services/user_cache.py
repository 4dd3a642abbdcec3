"""
In-process TTL cache of resolved user identities.

Used by request authentication so every request does not hit the users
table. Any code path that writes a cached user field must call
invalidate(user_id).
"""

import time
from collections.abc import Callable
from typing import Generic, TypeVar

from relgraph.config import settings
from relgraph.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


class UserIdentityCache(Generic[V]):
    """
    Fixed-TTL cache with a size cap.

    At capacity the oldest inserted entry is evicted. The clock is injected
    so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, tuple[V, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: str) -> bool:
        return self.get(user_id) is not None

    def get(self, user_id: str) -> V | None:
        entry = self._entries.get(user_id)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[user_id]
            return None
        return value

    def set(self, user_id: str, value: V) -> None:
        # Re-inserting moves the key to the newest position
        self._entries.pop(user_id, None)

        if len(self._entries) >= self.max_entries:
            self.purge_expired()
        if len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("User cache at capacity, evicted oldest entry", max_entries=self.max_entries)

        self._entries[user_id] = (value, self._clock() + self.ttl_seconds)

    def invalidate(self, user_id: str) -> bool:
        removed = self._entries.pop(user_id, None) is not None
        if removed:
            logger.debug("User cache entry invalidated", user_id=user_id)
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)


# Process-wide instance used by auth and invalidated by user writes
user_identity_cache: UserIdentityCache = UserIdentityCache(
    ttl_seconds=settings.USER_CACHE_TTL_SECONDS,
    max_entries=settings.USER_CACHE_MAX_ENTRIES,
)


def invalidate_user_cache(user_id: str) -> None:
    """Drop a user's cached identity after any write to cached fields."""
    user_identity_cache.invalidate(user_id)
