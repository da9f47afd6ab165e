from typing import Dict, Iterable, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from games_api.crud import CreateData, ReadData
from games_api.models.schema_models import UserSchema


class UserStore:
    """Users service; games embed a projection of their creator from here."""

    def __init__(self, Session: async_sessionmaker):
        self.Session: async_sessionmaker = Session

    async def get(self, user_ids: Iterable[UUID], fields: Sequence[str]) -> Dict[UUID, dict]:
        """Read several users and keep only the requested fields

        Args:
            user_ids (Iterable[UUID]): Users to resolve
            fields (Sequence[str]): Projection, e.g. ["username", "bio", "image"]

        Returns:
            Dict[UUID, dict]: Projected users keyed by user_id; unknown ids are absent
        """
        async with self.Session() as session:
            users = await ReadData.read_users(user_ids, session)
        return {
            user.user_id: user.model_dump(include=set(fields))
            for user in users
        }

    async def find_by_name(self, username: str) -> UserSchema | None:
        async with self.Session() as session:
            return await ReadData.read_user_by_name(username, session)

    async def insert(self, user: UserSchema) -> UserSchema:
        async with self.Session() as session:
            return await CreateData.create_user_data(user, session)
