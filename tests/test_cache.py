import asyncio

import pytest
from fakeredis import FakeAsyncRedis

from games_api.cache import MemoryCache, RedisCache, build_cache_key
from games_api.cache_cleaner import CacheCleaner, topic_for


class TestBuildCacheKey:
    def test_missing_parameters_do_not_perturb_the_key(self):
        keys = ("tag", "creator", "limit", "offset")

        bare = build_cache_key("games.list", None, {}, keys)
        with_nones = build_cache_key("games.list", None, {"tag": None, "limit": None}, keys)

        assert bare == with_nones == "games.list:anonymous"

    def test_key_follows_declared_order(self):
        keys = ("tag", "creator", "limit", "offset")

        key = build_cache_key("games.list", "u1", {"offset": 0, "limit": 2, "tag": "chess"}, keys)

        assert key == "games.list:u1|tag=chess|limit=2|offset=0"

    def test_undeclared_parameters_are_ignored(self):
        key = build_cache_key("games.list", "u1", {"limit": 2, "colour": "red"}, ("limit",))
        assert key == "games.list:u1|limit=2"


class TestMemoryCache:
    async def test_get_returns_an_equal_independent_copy(self):
        cache = MemoryCache()
        value = {"games": [{"name": "Chess"}], "games_count": 1}
        await cache.set("k", value, tags=["games"])

        first = await cache.get("k")
        first["games"].append({"name": "mutated"})
        second = await cache.get("k")

        assert second == value

    async def test_invalidate_group_drops_every_tagged_entry(self):
        cache = MemoryCache()
        await cache.set("a", 1, tags=["games"])
        await cache.set("b", 2, tags=["games", "users"])
        await cache.set("c", 3, tags=["users"])

        removed = await cache.invalidate_group("games")

        assert removed == 2
        assert await cache.get("a") is None
        assert await cache.get("b") is None
        assert await cache.get("c") == 3
        assert await cache.invalidate_group("games") == 0

    async def test_expired_entries(self):
        cache = MemoryCache()
        await cache.set("old", 1, tags=["games"], ttl_seconds=-1)
        await cache.set("new", 2, tags=["games"])

        assert await cache.cleanup_expired() == 1
        assert await cache.get("old") is None
        assert await cache.get("new") == 2

    async def test_get_or_set_computes_once(self):
        cache = MemoryCache()
        calls = []

        async def factory():
            calls.append(1)
            return {"games": [], "games_count": 0}

        first = await cache.get_or_set("k", factory, tags=["games"])
        second = await cache.get_or_set("k", factory, tags=["games"])

        assert first == second
        assert len(calls) == 1
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1

    async def test_value_computed_across_an_invalidation_is_not_stored(self):
        cache = MemoryCache()

        async def factory():
            await cache.invalidate_group("games")
            return {"games": [], "games_count": 0}

        value = await cache.get_or_set("k", factory, tags=["games"])

        assert value == {"games": [], "games_count": 0}
        assert await cache.get("k") is None
        assert await cache.set("k", value, tags=["games"], generations={"games": 0}) is False
        assert await cache.set("k", value, tags=["games"], generations={"games": 1}) is True

    async def test_concurrent_writes_and_invalidation(self):
        cache = MemoryCache()

        await asyncio.gather(
            *(cache.set(f"k{i}", i, tags=["games"]) for i in range(50)),
            cache.invalidate_group("games"),
            *(cache.set(f"u{i}", i, tags=["users"]) for i in range(50)),
        )

        assert all([await cache.get(f"u{i}") == i for i in range(50)])
        await cache.invalidate_group("games")
        assert cache.get_stats()["size"] == 50

    async def test_clear(self):
        cache = MemoryCache()
        await cache.set("a", 1, tags=["games"])
        await cache.clear()
        assert await cache.get("a") is None
        assert await cache.invalidate_group("games") == 0


class TestCacheCleaner:
    async def test_entity_change_cleans_its_group(self):
        cache = MemoryCache()
        cleaner = CacheCleaner(cache)
        await cache.set("games.list:anonymous", {"games": []}, tags=["games"])
        await cache.set("other", 1, tags=["other"])

        await cleaner.entity_changed("created", "games")

        assert await cache.get("games.list:anonymous") is None
        assert await cache.get("other") == 1

    async def test_user_topic_cleans_games(self):
        cache = MemoryCache()
        cleaner = CacheCleaner(cache)
        await cache.set("games.list:anonymous", {"games": []}, tags=["games"])

        await cleaner.broadcast(topic_for("users"))

        assert await cache.get("games.list:anonymous") is None

    async def test_unknown_topic_is_ignored(self):
        cache = MemoryCache()
        cleaner = CacheCleaner(cache, subscriptions={"cache.clean.games": ["games"]})
        await cache.set("k", 1, tags=["games"])

        await cleaner.broadcast(topic_for("users"))

        assert await cache.get("k") == 1


@pytest.fixture
async def redis():
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


class TestRedisCache:
    async def test_set_get_and_invalidate_group(self, redis):
        cache = RedisCache(redis, prefix="test-cache")
        await cache.set("a", {"games": [1]}, tags=["games"])
        await cache.set("b", {"games": [2]}, tags=["users"])

        assert await cache.get("a") == {"games": [1]}
        assert await cache.invalidate_group("games") == 1
        assert await cache.get("a") is None
        assert await cache.get("b") == {"games": [2]}
        assert await redis.exists("test-cache:tag:games") == 0

    async def test_entries_expire(self, redis):
        cache = RedisCache(redis, prefix="test-cache")
        await cache.set("a", 1, tags=["games"], ttl_seconds=30)

        assert 0 < await redis.ttl("test-cache:a") <= 30

    async def test_invalidation_bumps_generation(self, redis):
        cache = RedisCache(redis, prefix="test-cache")
        assert await cache.get_generations(["games"]) == {"games": 0}

        await cache.invalidate_group("games")
        await cache.invalidate_group("games")

        assert await cache.get_generations(["games", "users"]) == {"games": 2, "users": 0}

    async def test_value_computed_across_an_invalidation_is_not_stored(self, redis):
        cache = RedisCache(redis, prefix="test-cache")

        async def factory():
            await cache.invalidate_group("games")
            return {"games": [], "games_count": 0}

        value = await cache.get_or_set("k", factory, tags=["games"])

        assert value == {"games": [], "games_count": 0}
        assert await cache.get("k") is None
        assert await redis.smembers("test-cache:tag:games") == set()

    async def test_clear_only_touches_its_prefix(self, redis):
        cache = RedisCache(redis, prefix="test-cache")
        await redis.set("unrelated", "1")
        await cache.set("a", 1, tags=["games"])

        await cache.clear()

        assert await cache.get("a") is None
        assert await redis.get("unrelated") == "1"


class TestCacheCleanerPubSub:
    async def test_broadcast_reaches_other_workers(self, redis):
        local = RedisCache(redis, prefix="test-cache")
        listener_cache = MemoryCache()
        await listener_cache.set("k", 1, tags=["games"])
        listener = CacheCleaner(listener_cache, redis=redis)
        task = asyncio.create_task(listener.listen())
        await asyncio.sleep(0.1)

        await CacheCleaner(local, redis=redis).entity_changed("updated", "games")
        for _ in range(50):
            if await listener_cache.get("k") is None:
                break
            await asyncio.sleep(0.05)

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        assert await listener_cache.get("k") is None

    async def test_broadcast_publishes_the_topic(self, redis):
        pubsub = redis.pubsub()
        await pubsub.subscribe("cache.clean")
        await pubsub.get_message(timeout=1.0)

        await CacheCleaner(MemoryCache(), redis=redis).broadcast(topic_for("users"))
        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)

        await pubsub.unsubscribe("cache.clean")
        await pubsub.aclose()
        assert msg["data"] == "cache.clean.users"
