from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, asc, func
from typing import Iterable, List
import logging

from games_api.models.schema_models import (
    GameFilter,
    GameQuery,
    GameSchema,
    UserSchema,
)
from games_api.models.schemas import Game, GameTag, User
from uuid import UUID

# Columns a patch may touch; slug, creator and created_at never change
UPDATABLE_FIELDS = ("name", "description", "updated_at")


def filter_conditions(filters: GameFilter) -> list:
    """Translate a filter snapshot into SQL conditions

    Args:
        filters (GameFilter): Frozen filter shared by the row fetch and the count

    Returns:
        list: Conditions to pass to Select.where
    """
    conditions = []
    if filters.tag is not None:
        conditions.append(
            Game.game_id.in_(select(GameTag.game_id).where(GameTag.tag == filters.tag))
        )
    if filters.creator_id is not None:
        conditions.append(Game.creator_id == filters.creator_id)
    return conditions


def sort_columns(sort: Iterable[str]) -> list:
    """Turn ["-created_at"] style sort keys into order_by clauses"""
    columns = []
    for key in sort:
        direction = desc if key.startswith("-") else asc
        columns.append(direction(getattr(Game, key.lstrip("-+"))))
    # uuid7 primary keys are time ordered, so ties keep a stable page order
    columns.append(desc(Game.game_id))
    return columns


class ReadData:
    @staticmethod
    async def read_game_by_slug(slug: str, session: AsyncSession) -> GameSchema | None:
        """Read a game by its unique slug

        Args:
            slug (str): Slug generated when the game was created

        Returns:
            GameSchema | None: The game, or None when no game has this slug
        """
        async with session:
            try:
                stmt = select(Game).where(Game.slug == slug)
                result = await session.execute(stmt)
                result = result.scalars().first()

                if result is None:
                    return None

                return GameSchema.model_validate(result)
            except Exception as e:
                logging.error(f"Failed to read game by slug: {e}")
                raise

    @staticmethod
    async def read_game_by_id(game_id: UUID, session: AsyncSession) -> GameSchema | None:
        """Read a game by its primary key

        Args:
            game_id (UUID): To identify the game

        Returns:
            GameSchema | None: The game, or None when it does not exist
        """
        async with session:
            try:
                result = await session.get(Game, game_id)
                if result is None:
                    return None

                return GameSchema.model_validate(result)
            except Exception as e:
                logging.error(f"Failed to read game by id: {e}")
                raise

    @staticmethod
    async def read_games(query: GameQuery, session: AsyncSession) -> List[GameSchema]:
        """Read one page of games matching the query filters

        Args:
            query (GameQuery): Filters, sort keys and pagination

        Returns:
            List[GameSchema]: Games in sort order
        """
        async with session:
            try:
                stmt = (
                    select(Game)
                    .where(*filter_conditions(query.filters))
                    .order_by(*sort_columns(query.sort))
                )
                if query.limit is not None:
                    stmt = stmt.limit(query.limit)
                if query.offset:
                    stmt = stmt.offset(query.offset)

                result = await session.execute(stmt)
                return [GameSchema.model_validate(game) for game in result.scalars().all()]
            except Exception as e:
                logging.error(f"Failed to read games: {e}")
                raise

    @staticmethod
    async def count_games(filters: GameFilter, session: AsyncSession) -> int:
        """Count every game matching the filters, ignoring pagination

        Args:
            filters (GameFilter): The same snapshot the row fetch used

        Returns:
            int: Number of matching games
        """
        async with session:
            try:
                stmt = (
                    select(func.count())
                    .select_from(Game)
                    .where(*filter_conditions(filters))
                )
                result = await session.execute(stmt)
                return result.scalar_one()
            except Exception as e:
                logging.error(f"Failed to count games: {e}")
                raise

    @staticmethod
    async def read_user_by_name(username: str, session: AsyncSession) -> UserSchema | None:
        """Read user data used by basic authentication

        Args:
            username (str): Login name

        Returns:
            UserSchema | None: The user, or None when unknown
        """
        async with session:
            try:
                stmt = select(User).where(User.username == username)
                result = await session.execute(stmt)
                result = result.scalars().first()

                if result is None:
                    return None

                return UserSchema.model_validate(result)
            except Exception as e:
                logging.error(f"Failed to read user data: {e}")
                raise

    @staticmethod
    async def read_users(user_ids: Iterable[UUID], session: AsyncSession) -> List[UserSchema]:
        """Read several users in one query

        Args:
            user_ids (Iterable[UUID]): Users to read

        Returns:
            List[UserSchema]: The users that exist, in no particular order
        """
        user_ids = list(user_ids)
        if not user_ids:
            return []
        async with session:
            try:
                stmt = select(User).where(User.user_id.in_(user_ids))
                result = await session.execute(stmt)
                return [UserSchema.model_validate(user) for user in result.scalars().all()]
            except Exception as e:
                logging.error(f"Failed to read users: {e}")
                raise


class CreateData:
    @staticmethod
    async def create_game_data(game: GameSchema, session: AsyncSession) -> GameSchema:
        """Insert a game with its tags

        Args:
            game (GameSchema): Game with slug, creator and timestamps already set
            session (AsyncSession): AsyncSession object to interact with database

        Returns:
            GameSchema: The stored game
        """
        async with session:
            try:
                new_game = Game(
                    game_id=game.game_id,
                    slug=game.slug,
                    name=game.name,
                    description=game.description,
                    creator_id=game.creator_id,
                    created_at=game.created_at,
                    updated_at=game.updated_at,
                    tags=[
                        GameTag(tag=tag, position=position)
                        for position, tag in enumerate(dict.fromkeys(game.tag_list))
                    ],
                )
                session.add(new_game)
                await session.commit()
                return GameSchema.model_validate(new_game)
            except Exception as e:
                await session.rollback()
                logging.error(f"Failed to create game data: {e}")
                raise

    @staticmethod
    async def create_user_data(user: UserSchema, session: AsyncSession) -> UserSchema:
        """Insert a user

        Args:
            user (UserSchema): User with hashed password and salt
        """
        async with session:
            try:
                new_user = User(**user.model_dump())
                session.add(new_user)
                await session.commit()
                return UserSchema.model_validate(new_user)
            except Exception as e:
                await session.rollback()
                logging.error(f"Failed to create user data: {e}")
                raise


class UpdateData:
    @staticmethod
    async def update_game_data(game_id: UUID, patch: dict, session: AsyncSession) -> GameSchema | None:
        """Merge the supplied fields into a stored game

        Args:
            game_id (UUID): To identify the game
            patch (dict): Only these fields change

        Returns:
            GameSchema | None: The game after the update, None if it does not exist
        """
        async with session:
            try:
                result = await session.get(Game, game_id)
                if result is None:
                    return None

                for field in UPDATABLE_FIELDS:
                    if field in patch:
                        setattr(result, field, patch[field])
                await session.commit()
            except Exception as e:
                await session.rollback()
                logging.error(f"Failed to update game data: {e}")
                raise
        return await ReadData.read_game_by_id(game_id, session)


class DeleteData:
    @staticmethod
    async def delete_game_data(game_id: UUID, session: AsyncSession) -> GameSchema | None:
        """Hard delete a game, its tags go with it

        Args:
            game_id (UUID): To identify the game

        Returns:
            GameSchema | None: The removed game, None if it did not exist
        """
        async with session:
            try:
                result = await session.get(Game, game_id)
                if result is None:
                    return None

                removed = GameSchema.model_validate(result)
                await session.delete(result)
                await session.commit()
                return removed
            except Exception as e:
                await session.rollback()
                logging.error(f"Failed to delete game data: {e}")
                raise
