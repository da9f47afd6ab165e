"""
Shared fixtures: a file backed SQLite database per test, two registered
users and a game service wired the way the application wires it.
"""

from collections import Counter
from typing import List

import pytest

from games_api.authentication.basic_authentication import BasicAuthentication
from games_api.cache import MemoryCache
from games_api.cache_cleaner import CacheCleaner
from games_api.create_sqlite_engine import create_sqlite_engine
from games_api.db import create_session_factory, create_tables
from games_api.models.schema_models import GameFilter, GameQuery
from games_api.populator import PopulateRule, Populator
from games_api.services.game_db import GameStore
from games_api.services.game_service import GameService
from games_api.services.user_db import UserStore


class CountingGameStore(GameStore):
    """GameStore that records every call it receives."""

    def __init__(self, Session):
        super().__init__(Session)
        self.calls = Counter()
        self.find_queries: List[GameQuery] = []
        self.count_filters: List[GameFilter] = []

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def insert(self, game):
        self.calls["insert"] += 1
        return await super().insert(game)

    async def find_one(self, slug):
        self.calls["find_one"] += 1
        return await super().find_one(slug)

    async def find_by_id(self, game_id):
        self.calls["find_by_id"] += 1
        return await super().find_by_id(game_id)

    async def find(self, query):
        self.calls["find"] += 1
        self.find_queries.append(query)
        return await super().find(query)

    async def count(self, filters):
        self.calls["count"] += 1
        self.count_filters.append(filters)
        return await super().count(filters)

    async def update_by_id(self, game_id, patch):
        self.calls["update_by_id"] += 1
        return await super().update_by_id(game_id, patch)

    async def remove_by_id(self, game_id):
        self.calls["remove_by_id"] += 1
        return await super().remove_by_id(game_id)


@pytest.fixture
async def engine(tmp_path):
    engine = create_sqlite_engine(tmp_path / "games.sqlite3")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def Session(engine):
    return create_session_factory(engine)


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def cache_cleaner(cache):
    return CacheCleaner(cache)


@pytest.fixture
def user_store(Session):
    return UserStore(Session)


@pytest.fixture
def basic_auth(user_store, cache_cleaner):
    return BasicAuthentication(user_store, cache_cleaner, pepper="test-pepper")


@pytest.fixture
async def user_a(basic_auth):
    return await basic_auth.store_user_data("alice", "alice-password", bio="plays chess")


@pytest.fixture
async def user_b(basic_auth):
    return await basic_auth.store_user_data("bob", "bob-password")


@pytest.fixture
def store(Session):
    return CountingGameStore(Session)


@pytest.fixture
def populator(user_store):
    return Populator(
        {"creator": PopulateRule(field="creator_id", fetch=user_store.get, fields=["username", "bio", "image"])}
    )


@pytest.fixture
def game_service(store, populator, cache, cache_cleaner):
    return GameService(store=store, populator=populator, cache=cache, cache_cleaner=cache_cleaner)
