"""Entity store for games.

- Every call opens its own session, so calls may run concurrently.
- Store errors propagate to the caller unchanged; nothing is retried here.
"""

from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from games_api.crud import CreateData, DeleteData, ReadData, UpdateData
from games_api.models.schema_models import GameFilter, GameQuery, GameSchema


class GameStore:
    def __init__(self, Session: async_sessionmaker):
        self.Session: async_sessionmaker = Session

    async def insert(self, game: GameSchema) -> GameSchema:
        async with self.Session() as session:
            return await CreateData.create_game_data(game, session)

    async def find_one(self, slug: str) -> GameSchema | None:
        async with self.Session() as session:
            return await ReadData.read_game_by_slug(slug, session)

    async def find_by_id(self, game_id: UUID) -> GameSchema | None:
        async with self.Session() as session:
            return await ReadData.read_game_by_id(game_id, session)

    async def find(self, query: GameQuery) -> List[GameSchema]:
        async with self.Session() as session:
            return await ReadData.read_games(query, session)

    async def count(self, filters: GameFilter) -> int:
        async with self.Session() as session:
            return await ReadData.count_games(filters, session)

    async def update_by_id(self, game_id: UUID, patch: dict) -> GameSchema | None:
        async with self.Session() as session:
            return await UpdateData.update_game_data(game_id, patch, session)

    async def remove_by_id(self, game_id: UUID) -> GameSchema | None:
        async with self.Session() as session:
            return await DeleteData.delete_game_data(game_id, session)
