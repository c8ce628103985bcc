"""Tests for the group path cache."""

from app.providers.identity.group_cache import GroupPathCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestGroupPathCache:
    """TTL and invalidation behavior."""

    def test_returns_cached_id(self):
        """A fresh entry is returned."""
        cache = GroupPathCache(ttl_seconds=60, clock=FakeClock())
        cache.put("/members/new", "g1")
        assert cache.get("/members/new") == "g1"

    def test_entry_expires_after_ttl(self):
        """Entries older than the TTL are dropped on read."""
        clock = FakeClock()
        cache = GroupPathCache(ttl_seconds=60, clock=clock)
        cache.put("/members/new", "g1")

        clock.now += 60

        assert cache.get("/members/new") is None
        assert len(cache) == 0

    def test_invalidate_one_path(self):
        """invalidate(path) drops only that path."""
        cache = GroupPathCache(clock=FakeClock())
        cache.put("/members/new", "g1")
        cache.put("/members/active", "g2")

        cache.invalidate("/members/new")

        assert cache.get("/members/new") is None
        assert cache.get("/members/active") == "g2"

    def test_invalidate_all(self):
        """invalidate() with no path clears everything."""
        cache = GroupPathCache(clock=FakeClock())
        cache.put("/members/new", "g1")
        cache.invalidate()
        assert len(cache) == 0

    def test_unknown_path_is_none(self):
        """A path never cached misses."""
        assert GroupPathCache().get("/nope") is None
