"""Tests for the processed results cache."""
import asyncio
import json
from datetime import datetime, timezone

from vote_processor.data_models import ProcessedResults, RawVote

from ..results_cache import ResultsCache, snapshot_version


def _votes(*powers):
    return [
        RawVote(
            voter_address=f"0x{i}",
            voting_power=power,
            choice=0,
            time_created=datetime(2024, 1, 1, 10, i, tzinfo=timezone.utc),
        )
        for i, power in enumerate(powers)
    ]


def _results(total=10.0):
    return ProcessedResults(choices=["For", "Against"], total_voting_power=total, final_results={0: total, 1: 0.0})


class FakeSyncRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.data.pop(key, None)


class FakeAsyncRedis(FakeSyncRedis):
    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        self.data.pop(key, None)


class TestSnapshotVersion:
    """Vote snapshot digests."""

    def test_changes_with_votes(self):
        """Adding a vote changes the version."""
        assert snapshot_version(_votes(1, 2)) != snapshot_version(_votes(1, 2, 3))

    def test_changes_with_corrected_choice(self):
        """A changed choice with the same count, time and power changes the version."""
        votes = _votes(1, 2)
        corrected = [votes[0], votes[1].model_copy(update={"choice": 1})]
        assert snapshot_version(votes) != snapshot_version(corrected)

    def test_stable(self):
        """The same snapshot always gives the same version."""
        assert snapshot_version(_votes(1, 2)) == snapshot_version(_votes(1, 2))

    def test_cache_key_prefix(self):
        """Keys are namespaced and hashed."""
        key = ResultsCache.build_cache_key("p1", "v1")
        assert key.startswith("vote_results:")
        assert len(key) == len("vote_results:") + 64


class TestMemoryCache:
    """In-memory fallback."""

    def test_store_and_get(self):
        """A stored result is returned for the same snapshot."""
        cache = ResultsCache(ttl_seconds=60)
        votes = _votes(1, 2)

        async def run():
            assert await cache.get("p1", votes) is None
            assert await cache.store("p1", _results(), votes) is True
            return await cache.get("p1", votes)

        cached = asyncio.run(run())
        assert cached.total_voting_power == 10.0

    def test_new_vote_misses(self):
        """A changed vote snapshot is a different entry."""
        cache = ResultsCache(ttl_seconds=60)

        async def run():
            await cache.store("p1", _results(), _votes(1, 2))
            return await cache.get("p1", _votes(1, 2, 3))

        assert asyncio.run(run()) is None

    def test_ttl_expiry(self):
        """Expired entries are evicted on read."""
        cache = ResultsCache(ttl_seconds=0)

        async def run():
            await cache.store("p1", _results(), version="v1")
            return await cache.get("p1", version="v1"), await cache.get_stats()

        cached, stats = asyncio.run(run())
        assert cached is None
        assert stats["memory_cache_entries"] == 0

    def test_invalidate_all_versions(self):
        """Invalidating a proposal drops all of its snapshots."""
        cache = ResultsCache(ttl_seconds=60)

        async def run():
            await cache.store("p1", _results(), version="v1")
            await cache.store("p1", _results(), version="v2")
            await cache.store("p2", _results(), version="v1")
            removed = await cache.invalidate("p1")
            return removed, await cache.get("p2", version="v1")

        removed, other = asyncio.run(run())
        assert removed == 2
        assert other is not None

    def test_stats(self):
        """Hits and misses are counted."""
        cache = ResultsCache(ttl_seconds=60)

        async def run():
            await cache.get("p1", version="v1")
            await cache.store("p1", _results(), version="v1")
            await cache.get("p1", version="v1")
            return await cache.get_stats()

        stats = asyncio.run(run())
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["memory_cache_entries"] == 1
        assert stats["redis_available"] is False


class TestRedisCache:
    """Redis-backed storage."""

    def test_sync_client(self):
        """A sync client stores JSON with the TTL."""
        redis = FakeSyncRedis()
        cache = ResultsCache(ttl_seconds=120, redis_client=redis)

        async def run():
            await cache.store("p1", _results(42.0), version="v1")
            return await cache.get("p1", version="v1")

        cached = asyncio.run(run())
        key = ResultsCache.build_cache_key("p1", "v1")
        assert redis.ttls[key] == 120
        assert json.loads(redis.data[key])["totalVotingPower"] == 42.0
        assert cached.final_results == {0: 42.0, 1: 0.0}

    def test_async_client(self):
        """An async client works the same way."""
        redis = FakeAsyncRedis()
        cache = ResultsCache(ttl_seconds=120, redis_client=redis)

        async def run():
            await cache.store("p1", _results(7.0), version="v1")
            cached = await cache.get("p1", version="v1")
            await cache.invalidate("p1", version="v1")
            return cached, await cache.get("p1", version="v1")

        cached, after = asyncio.run(run())
        assert cached.total_voting_power == 7.0
        assert after is None
