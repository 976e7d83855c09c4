# TTL cache for processed vote results
import hashlib
import inspect
import json
import logging
import asyncio
from typing import Optional, Dict, Any, List
from datetime import datetime, timedelta, timezone

from vote_processor.config.settings import RESULTS_CACHE_TTL_SECONDS
from vote_processor.data_models import ProcessedResults, RawVote

logger = logging.getLogger(__name__)


def snapshot_version(votes: List[RawVote]) -> str:
    """Digest of a vote snapshot.

    Covers the vote count, latest vote time and total power, plus every
    vote's id, voter and choice so a corrected choice changes the version.
    """
    timestamps = [vote.time_created for vote in votes if vote.time_created is not None]
    latest = max(timestamps).isoformat() if timestamps else "none"
    total_power = sum(vote.voting_power for vote in votes)
    ballots = json.dumps(
        [[vote.id, vote.voter_address, vote.choice] for vote in votes],
        sort_keys=True,
        default=str,
    )
    ballots_digest = hashlib.sha256(ballots.encode()).hexdigest()
    raw = f"{len(votes)}:{latest}:{total_power!r}:{ballots_digest}"
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class ResultsCache:
    """TTL cache for ProcessedResults keyed by proposal and vote snapshot.

    A new vote changes the snapshot version and therefore the key, so stale
    results are never served for a changed vote set; the TTL only bounds how
    long unused entries are kept. Redis is used when a client (sync or async)
    is given, with an in-memory fallback.
    """

    def __init__(self, ttl_seconds: int = RESULTS_CACHE_TTL_SECONDS, redis_client=None):
        self.ttl_seconds = ttl_seconds
        self.redis_client = redis_client
        self._memory_cache: Dict[str, Dict[str, Any]] = {}
        self._cache_lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def build_cache_key(proposal_id: str, version: str) -> str:
        digest = hashlib.sha256(f"{proposal_id}:{version}".encode()).hexdigest()
        return f"vote_results:{digest}"

    def _resolve_key(self, proposal_id: str, votes: Optional[List[RawVote]], version: Optional[str]) -> str:
        if version is None:
            version = snapshot_version(votes or [])
        return self.build_cache_key(proposal_id, version)

    def _is_cache_fresh(self, stored_at: datetime) -> bool:
        return datetime.now(timezone.utc) < stored_at + timedelta(seconds=self.ttl_seconds)

    async def get(
        self,
        proposal_id: str,
        votes: Optional[List[RawVote]] = None,
        version: Optional[str] = None,
    ) -> Optional[ProcessedResults]:
        """Cached results for this proposal and vote snapshot, if still fresh."""
        cache_key = self._resolve_key(proposal_id, votes, version)

        try:
            if self.redis_client:
                cached_data = await self._get_from_redis(cache_key)
                if cached_data:
                    self._hits += 1
                    return ProcessedResults.model_validate(cached_data)

            async with self._cache_lock:
                cache_entry = self._memory_cache.get(cache_key)
                if cache_entry is not None:
                    if self._is_cache_fresh(cache_entry["stored_at"]):
                        self._hits += 1
                        logger.info(f"Cache HIT (memory) for {cache_key}")
                        return cache_entry["data"]
                    del self._memory_cache[cache_key]
                    logger.info(f"Cache EXPIRED (memory) for {cache_key}")

            self._misses += 1
            logger.info(f"Cache MISS for {cache_key}")
            return None

        except Exception as e:
            logger.error(f"Error retrieving from cache {cache_key}: {e}")
            return None

    async def store(
        self,
        proposal_id: str,
        results: ProcessedResults,
        votes: Optional[List[RawVote]] = None,
        version: Optional[str] = None,
    ) -> bool:
        cache_key = self._resolve_key(proposal_id, votes, version)

        try:
            if self.redis_client:
                if await self._store_in_redis(cache_key, results):
                    logger.info(f"Stored in Redis cache: {cache_key}")
                    return True

            async with self._cache_lock:
                self._memory_cache[cache_key] = {
                    "proposal_id": proposal_id,
                    "data": results,
                    "stored_at": datetime.now(timezone.utc),
                }
                logger.info(f"Stored in memory cache: {cache_key}")
                self._cleanup_expired_memory_cache()
            return True

        except Exception as e:
            logger.error(f"Error storing to cache {cache_key}: {e}")
            return False

    async def invalidate(self, proposal_id: str, version: Optional[str] = None) -> int:
        """Drop cached results for a proposal.

        Without `version` every in-memory snapshot of the proposal is dropped;
        Redis entries can only be removed for a known version.
        Returns the number of in-memory entries removed.
        """
        removed = 0
        try:
            if version is not None:
                cache_key = self.build_cache_key(proposal_id, version)
                if self.redis_client:
                    await _maybe_await(self.redis_client.delete(cache_key))
                async with self._cache_lock:
                    if self._memory_cache.pop(cache_key, None) is not None:
                        removed = 1
            else:
                async with self._cache_lock:
                    keys = [k for k, entry in self._memory_cache.items() if entry["proposal_id"] == proposal_id]
                    for key in keys:
                        del self._memory_cache[key]
                    removed = len(keys)

            logger.info(f"Invalidated {removed} cached result(s) for proposal {proposal_id}")
        except Exception as e:
            logger.error(f"Error invalidating cache for proposal {proposal_id}: {e}")
        return removed

    def _cleanup_expired_memory_cache(self):
        expired_keys = [
            key for key, entry in self._memory_cache.items()
            if not self._is_cache_fresh(entry["stored_at"])
        ]
        for key in expired_keys:
            del self._memory_cache[key]
        if expired_keys:
            logger.info(f"Cleaned up {len(expired_keys)} expired cache entries")

    async def _get_from_redis(self, cache_key: str) -> Optional[Dict[str, Any]]:
        try:
            data = await _maybe_await(self.redis_client.get(cache_key))
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logger.error(f"Redis get error: {e}")
            return None

    async def _store_in_redis(self, cache_key: str, results: ProcessedResults) -> bool:
        try:
            data = results.model_dump_json(by_alias=True)
            await _maybe_await(self.redis_client.setex(cache_key, self.ttl_seconds, data))
            return True
        except Exception as e:
            logger.error(f"Redis store error: {e}")
            return False

    async def get_stats(self) -> Dict[str, Any]:
        """Cache statistics for monitoring"""
        async with self._cache_lock:
            memory_count = len(self._memory_cache)

        return {
            "memory_cache_entries": memory_count,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "redis_available": self.redis_client is not None,
        }
