"""In-memory group path → directory group id cache.

WHY IN-MEMORY:
- Group ids change only when an operator edits the realm
- Resolving a path costs a directory round trip per segment
- Owned and injected by the directory adapter, never module-level state

WHY TTL + invalidate():
- TTL bounds staleness after an out-of-band realm change
- invalidate() lets the adapter drop an entry the directory just rejected
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

# Default TTL for cached group ids (5 minutes)
DEFAULT_GROUP_CACHE_TTL_SECONDS = 300


@dataclass
class _CachedGroup:
    group_id: str
    expires_at: float


class GroupPathCache:
    """TTL cache of group path → directory group id.

    Note: This implementation is safe for async/await usage (single-threaded
    event loop) but not for multi-threaded access.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_GROUP_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime in seconds.
            clock: Monotonic time source (injectable for tests).
        """
        self._entries: dict[str, _CachedGroup] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def get(self, path: str) -> str | None:
        """Return the cached id for a path, or None if absent or stale."""
        entry = self._entries.get(path)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[path]
            return None
        return entry.group_id

    def put(self, path: str, group_id: str) -> None:
        """Cache a resolved id for a path."""
        self._entries[path] = _CachedGroup(
            group_id=group_id,
            expires_at=self._clock() + self._ttl_seconds,
        )

    def invalidate(self, path: str | None = None) -> None:
        """Drop one path, or every entry when path is None."""
        if path is None:
            self._entries.clear()
        else:
            self._entries.pop(path, None)

    def __len__(self) -> int:
        return len(self._entries)
