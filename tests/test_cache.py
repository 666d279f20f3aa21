"""Tests for the expiring cache."""

from receipt_ledger.accounts import TTLCache


class TestTTLCache:
    """Tests for TTLCache with an injected clock."""

    def test_hit_before_expiry(self, clock):
        """Entries are returned until ttl seconds have passed."""
        cache = TTLCache(300, clock=clock)
        cache.set("k", "v")
        clock.advance(299)

        assert cache.get("k") == "v"

    def test_expired_entry_evicted(self, clock):
        """At the ttl boundary the entry is gone."""
        cache = TTLCache(300, clock=clock)
        cache.set("k", "v")
        clock.advance(300)

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_lookup_distinguishes_cached_none(self, clock):
        """A cached miss is still a hit."""
        cache = TTLCache(300, clock=clock)
        cache.set("miss", None)

        assert cache.lookup("miss") == (True, None)
        assert cache.lookup("absent") == (False, None)

    def test_set_refreshes_timestamp(self, clock):
        """Re-setting a key restarts its lifetime."""
        cache = TTLCache(10, clock=clock)
        cache.set("k", 1)
        clock.advance(8)
        cache.set("k", 2)
        clock.advance(8)

        assert cache.get("k") == 2

    def test_stats_and_clear(self, clock):
        """Stats count expired entries that no write has evicted yet."""
        cache = TTLCache(10, clock=clock)
        cache.set("old", 1)
        clock.advance(5)
        cache.set("new", 2)
        clock.advance(7)

        assert cache.stats() == {"total_entries": 2, "valid_entries": 1, "expired_entries": 1}
        cache.clear()
        assert len(cache) == 0

    def test_write_evicts_expired_entries(self, clock):
        """Keys that are never read again do not accumulate."""
        cache = TTLCache(300, clock=clock)
        for i in range(500):
            cache.set(f"item-{i}", None)
        clock.advance(301)
        cache.set("fresh", "v")

        assert cache.stats() == {"total_entries": 1, "valid_entries": 1, "expired_entries": 0}

    def test_rewrite_moves_key_to_newest(self, clock):
        """A refreshed key outlives entries written before it."""
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        clock.advance(6)
        cache.set("a", 3)
        clock.advance(6)
        cache.set("c", 4)

        assert cache.get("a") == 3
        assert cache.get("b") is None
        assert len(cache) == 2

    def test_clear_expired(self, clock):
        """Explicit purge reports how many entries it dropped."""
        cache = TTLCache(10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        clock.advance(10)

        assert cache.clear_expired() == 2
        assert len(cache) == 0
