"""
Read-through cache for list responses, invalidated by group tag.

Every entry is tagged with one or more invalidation groups. A write to a
resource drops every entry of its group at once; there is no invalidation
by record id, filter or user. Values are stored as JSON, so each read
returns an independent copy that compares equal to what was stored.

Each group also has a generation counter that every invalidation bumps.
get_or_set records the generations before computing a value and only
stores it if none of them moved, so a value computed across a write is
returned to its caller but never cached.

Backends:
- MemoryCache: one process, guarded by an asyncio.Lock
- RedisCache: shared between workers, tag index kept in Redis sets
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Set

from redis.asyncio import Redis

ANONYMOUS = "anonymous"
DEFAULT_TTL = 300.0

# KEYS[1] tag set, KEYS[2] generation counter of the tag.
# Deletes the group and every key in it in one step, so no entry written
# concurrently can lose its tag while keeping its value.
_INVALIDATE_GROUP_SCRIPT = """
local unpack = unpack or table.unpack
local members = redis.call("SMEMBERS", KEYS[1])
for i = 1, #members, 500 do
    redis.call("DEL", unpack(members, i, math.min(i + 499, #members)))
end
redis.call("DEL", KEYS[1])
redis.call("INCR", KEYS[2])
return #members
"""

# KEYS[1] value key, then n generation keys, then n tag set keys.
# ARGV[1] payload, ARGV[2] ttl, ARGV[3] n, then n expected generations
# ("" when the caller did not record one).
_SET_SCRIPT = """
local n = tonumber(ARGV[3])
for i = 1, n do
    local expected = ARGV[3 + i]
    if expected ~= "" and (redis.call("GET", KEYS[1 + i]) or "0") ~= expected then
        return 0
    end
end
redis.call("SET", KEYS[1], ARGV[1], "EX", ARGV[2])
for i = 1, n do
    redis.call("SADD", KEYS[1 + n + i], KEYS[1])
end
return 1
"""


def build_cache_key(action: str, user_id: Any, params: Mapping[str, Any], keys: Iterable[str]) -> str:
    """Deterministic key for one request shape

    Args:
        action (str): Namespace of the read, e.g. "games.list"
        user_id (Any): Requesting user, None when anonymous
        params (Mapping[str, Any]): Parameters as supplied by the caller
        keys (Iterable[str]): Parameter names that take part in the key, in order

    Returns:
        str: e.g. "games.list:0190...|tag=chess|limit=2"; parameters that were
        not supplied are left out instead of rendered as empty
    """
    parts = [f"{action}:{user_id if user_id is not None else ANONYMOUS}"]
    for name in keys:
        value = params.get(name)
        if value is None:
            continue
        parts.append(f"{name}={value}")
    return "|".join(parts)


@dataclass
class CacheEntry:
    """Single cache entry with serialized value, tags and expiration time."""

    value: str
    expires_at: float
    tags: Set[str] = field(default_factory=set)

    def is_expired(self) -> bool:
        return time.time() > self.expires_at


class CacheManager:
    """Interface shared by the cache backends."""

    async def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    async def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str] = (),
        ttl_seconds: float = DEFAULT_TTL,
        generations: Optional[Mapping[str, int]] = None,
    ) -> bool:
        """Store a value under its tags

        Args:
            generations (Optional[Mapping[str, int]]): Tag generations read
                before the value was computed; the value is dropped if any
                of them has changed since

        Returns:
            bool: True if the value was stored
        """
        raise NotImplementedError

    async def get_generations(self, tags: Iterable[str]) -> Dict[str, int]:
        raise NotImplementedError

    async def invalidate_group(self, tag: str) -> int:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError

    async def cleanup_expired(self) -> int:
        return 0

    def get_stats(self) -> Dict[str, Any]:
        return {}

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        tags: Iterable[str] = (),
        ttl_seconds: float = DEFAULT_TTL,
    ) -> Any:
        """Return the cached value or compute, store and return it

        Args:
            key (str): Cache key
            factory (Callable[[], Awaitable[Any]]): Computes the value on a miss
            tags (Iterable[str]): Invalidation groups of the entry
            ttl_seconds (float): Time to live in seconds

        Returns:
            Any: Cached or computed value
        """
        cached_value = await self.get(key)
        if cached_value is not None:
            return cached_value

        tags = list(tags)
        generations = await self.get_generations(tags)
        value = await factory()
        if not await self.set(key, value, tags, ttl_seconds, generations=generations):
            logging.debug(f"Cache set skipped: {key} (group invalidated while computing)")
        return value


class MemoryCache(CacheManager):
    """In-process cache; group invalidation holds the lock for the whole sweep."""

    def __init__(self):
        self._cache: Dict[str, CacheEntry] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._generations: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._stats = {"hits": 0, "misses": 0, "invalidations": 0}

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats["misses"] += 1
                return None

            if entry.is_expired():
                self._drop(key)
                self._stats["misses"] += 1
                logging.debug(f"Cache expired: {key}")
                return None

            self._stats["hits"] += 1
            return json.loads(entry.value)

    async def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str] = (),
        ttl_seconds: float = DEFAULT_TTL,
        generations: Optional[Mapping[str, int]] = None,
    ) -> bool:
        payload = json.dumps(value)
        tags = set(tags)
        async with self._lock:
            if generations is not None and any(
                self._generations.get(tag, 0) != generation for tag, generation in generations.items()
            ):
                return False
            self._drop(key)
            self._cache[key] = CacheEntry(value=payload, expires_at=time.time() + ttl_seconds, tags=tags)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)
        logging.debug(f"Cache set: {key} (TTL: {ttl_seconds}s, tags: {sorted(tags)})")
        return True

    async def get_generations(self, tags: Iterable[str]) -> Dict[str, int]:
        async with self._lock:
            return {tag: self._generations.get(tag, 0) for tag in tags}

    async def invalidate_group(self, tag: str) -> int:
        async with self._lock:
            keys = self._tags.pop(tag, set())
            for key in keys:
                self._drop(key)
            self._generations[tag] = self._generations.get(tag, 0) + 1
            self._stats["invalidations"] += len(keys)
        logging.info(f"Cache group '{tag}' invalidated: {len(keys)} keys")
        return len(keys)

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._cache)
            self._cache.clear()
            self._tags.clear()
        logging.info(f"Cache cleared: {count} entries removed")

    async def cleanup_expired(self) -> int:
        async with self._lock:
            expired_keys = [key for key, entry in self._cache.items() if entry.is_expired()]
            for key in expired_keys:
                self._drop(key)
        if expired_keys:
            logging.debug(f"Cache cleanup: {len(expired_keys)} expired entries removed")
        return len(expired_keys)

    def get_stats(self) -> Dict[str, Any]:
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0
        return {**self._stats, "total_requests": total, "hit_rate": round(hit_rate, 2), "size": len(self._cache)}

    def _drop(self, key: str) -> None:
        # caller holds the lock
        entry = self._cache.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            members = self._tags.get(tag)
            if members is not None:
                members.discard(key)
                if not members:
                    del self._tags[tag]


class RedisCache(CacheManager):
    """Cache shared by every worker through Redis.

    Values live under "<prefix>:<key>" with a TTL; the keys of a group are
    members of the set "<prefix>:tag:<tag>" and its generation is the
    counter "<prefix>:gen:<tag>".
    """

    def __init__(self, redis: Redis, prefix: str = "cache"):
        self.redis: Redis = redis
        self.prefix: str = prefix

    def _value_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}:tag:{tag}"

    def _generation_key(self, tag: str) -> str:
        return f"{self.prefix}:gen:{tag}"

    async def get(self, key: str) -> Optional[Any]:
        payload = await self.redis.get(self._value_key(key))
        if payload is None:
            return None
        return json.loads(payload)

    async def set(
        self,
        key: str,
        value: Any,
        tags: Iterable[str] = (),
        ttl_seconds: float = DEFAULT_TTL,
        generations: Optional[Mapping[str, int]] = None,
    ) -> bool:
        tags = list(tags)
        generations = generations or {}
        keys = [
            self._value_key(key),
            *(self._generation_key(tag) for tag in tags),
            *(self._tag_key(tag) for tag in tags),
        ]
        args = [
            json.dumps(value),
            max(1, int(ttl_seconds)),
            len(tags),
            *(str(generations[tag]) if tag in generations else "" for tag in tags),
        ]
        stored = await self.redis.eval(_SET_SCRIPT, len(keys), *keys, *args)
        if not stored:
            return False
        logging.debug(f"Cache set: {key} (TTL: {ttl_seconds}s)")
        return True

    async def get_generations(self, tags: Iterable[str]) -> Dict[str, int]:
        tags = list(tags)
        if not tags:
            return {}
        values = await self.redis.mget([self._generation_key(tag) for tag in tags])
        return {tag: int(value or 0) for tag, value in zip(tags, values)}

    async def invalidate_group(self, tag: str) -> int:
        count = await self.redis.eval(_INVALIDATE_GROUP_SCRIPT, 2, self._tag_key(tag), self._generation_key(tag))
        logging.info(f"Cache group '{tag}' invalidated: {count} keys")
        return int(count)

    async def clear(self) -> None:
        keys = [key async for key in self.redis.scan_iter(match=f"{self.prefix}:*")]
        if keys:
            await self.redis.delete(*keys)
        logging.info(f"Cache cleared: {len(keys)} entries removed")
