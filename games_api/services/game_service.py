"""Game resource service.

Orchestrates the entity store, the populator, the result transformer and
the cache into the create, update, list, get and remove use cases.

- Writes check that the actor created the game before touching it.
- Every write signals the "games" invalidation group after the store
  write; lists are read through the cache.
- A list runs its row fetch and its count concurrently from one frozen
  filter snapshot, so both see the same filters.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from uuid6 import uuid7

from games_api.cache import CacheManager, DEFAULT_TTL, build_cache_key
from games_api.cache_cleaner import CacheCleaner, GAMES_GROUP
from games_api.converter import DataConverter, normalize_id
from games_api.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from games_api.models.dc_models import GameCreateModel, GameUpdateModel
from games_api.models.schema_models import GameFilter, GameQuery, GameSchema
from games_api.populator import Populator
from games_api.services.game_db import GameStore
from games_api.slug_utils import SlugUtils

DEFAULT_LIMIT = 20

T = TypeVar("T", bound=BaseModel)


class GameService:
    name = GAMES_GROUP
    populates = ["creator"]
    list_cache_keys = ("tag", "creator", "limit", "offset")
    list_by_user_cache_keys = ("creator", "limit", "offset")

    def __init__(
        self,
        store: GameStore,
        populator: Populator,
        cache: CacheManager,
        cache_cleaner: CacheCleaner,
        converter: Optional[DataConverter] = None,
        slug_utils: Optional[SlugUtils] = None,
        default_limit: int = DEFAULT_LIMIT,
        cache_ttl: float = DEFAULT_TTL,
    ):
        self.store = store
        self.populator = populator
        self.cache = cache
        self.cache_cleaner = cache_cleaner
        self.converter = converter or DataConverter()
        self.slug_utils = slug_utils or SlugUtils()
        self.default_limit = default_limit
        self.cache_ttl = cache_ttl

    async def create(self, entity: Any, actor_id: Any) -> dict:
        """Create a game owned by the actor

        Args:
            entity (Any): Game fields (name, description, optional tag_list)
            actor_id (Any): Authenticated user

        Raises:
            UnauthenticatedError: No actor
            ValidationError: name or description missing or empty

        Returns:
            dict: {"game": populated game}
        """
        actor = self._require_actor(actor_id)
        game_data = self._validate(GameCreateModel, entity)

        now = datetime.now()
        game = GameSchema(
            game_id=uuid7(),
            slug=await self._unique_slug(game_data.name),
            name=game_data.name,
            description=game_data.description,
            tag_list=game_data.tag_list,
            creator_id=actor,
            created_at=now,
            updated_at=now,
        )
        doc = await self.store.insert(game)
        json = await self._transform_game(doc, actor)
        logging.info(f"Game created: {doc.slug} by {actor}")
        await self.cache_cleaner.entity_changed("created", self.name)
        return json

    async def update(self, game_id: Any, patch: Any, actor_id: Any) -> dict:
        """Merge a partial update into a game the actor created

        Args:
            game_id (Any): Game ID
            patch (Any): Modified fields; fields left out keep their value
            actor_id (Any): Authenticated user

        Raises:
            UnauthenticatedError: No actor
            ValidationError: A supplied field is empty
            NotFoundError: No game has this id
            ForbiddenError: The actor is not the creator

        Returns:
            dict: {"game": populated game}
        """
        actor = self._require_actor(actor_id)
        new_data = self._validate(GameUpdateModel, patch).model_dump(exclude_unset=True)

        game = await self._find_by_id(game_id)
        if game is None:
            raise NotFoundError()
        self._check_owner(game, actor)

        new_data["updated_at"] = self._touch(game.updated_at)
        doc = await self.store.update_by_id(game.game_id, new_data)
        if doc is None:
            raise NotFoundError()

        json = await self._transform_game(doc, actor)
        logging.info(f"Game updated: {doc.slug} fields={sorted(new_data)}")
        await self.cache_cleaner.entity_changed("updated", self.name)
        return json

    async def list(
        self,
        filters: Optional[dict] = None,
        limit: Any = None,
        offset: Any = None,
        actor_id: Any = None,
    ) -> dict:
        """List games, newest first, with the total count of matching games

        Args:
            filters (Optional[dict]): "tag" and/or "creator"
            limit (Any): Page size, defaults to the configured page limit
            offset (Any): Rows to skip, defaults to 0
            actor_id (Any): Requesting user or None when anonymous

        Returns:
            dict: {"games": [...], "games_count": N}
        """
        filters = filters or {}
        tag = filters.get("tag") or None
        creator = self._parse_id(filters.get("creator"), "creator")
        params = {
            "tag": tag,
            "creator": creator,
            "limit": self._parse_int(limit, "limit"),
            "offset": self._parse_int(offset, "offset"),
        }
        game_filter = GameFilter(tag=tag, creator_id=creator)
        return await self._cached_list("games.list", self.list_cache_keys, params, game_filter, actor_id)

    async def list_by_user(
        self,
        creator_id: Any,
        limit: Any = None,
        offset: Any = None,
        actor_id: Any = None,
    ) -> dict:
        """List the games of one creator

        Returns:
            dict: {"games": [...], "games_count": N}
        """
        creator = self._parse_id(creator_id, "creator")
        if creator is None:
            raise ValidationError([{"field": "creator", "message": "Field required"}])
        params = {
            "creator": creator,
            "limit": self._parse_int(limit, "limit"),
            "offset": self._parse_int(offset, "offset"),
        }
        game_filter = GameFilter(creator_id=creator)
        return await self._cached_list("games.listByUser", self.list_by_user_cache_keys, params, game_filter, actor_id)

    async def get(self, slug: str, actor_id: Any = None) -> dict:
        """Find a game by slug

        Raises:
            NotFoundError: No game has this slug

        Returns:
            dict: {"game": populated game}
        """
        game = await self.find_by_slug(slug)
        if game is None:
            raise NotFoundError()
        return await self._transform_game(game, self._optional_actor(actor_id))

    async def remove(self, slug: Any, actor_id: Any) -> dict:
        """Remove a game by slug (or by id when no slug matches)

        Args:
            slug (Any): Game slug
            actor_id (Any): Authenticated user

        Raises:
            UnauthenticatedError: No actor
            NotFoundError: No game matches
            ForbiddenError: The actor is not the creator

        Returns:
            dict: {"game": removed record}
        """
        actor = self._require_actor(actor_id)
        entity = await self.find_by_slug(str(slug))
        if entity is None:
            entity = await self._find_by_id(slug)
        if entity is None:
            raise NotFoundError("Game not found!")
        self._check_owner(entity, actor)

        removed = await self.store.remove_by_id(entity.game_id)
        if removed is None:
            raise NotFoundError("Game not found!")
        logging.info(f"Game removed: {removed.slug} by {actor}")
        await self.cache_cleaner.entity_changed("removed", self.name)
        return self.converter.transform_result(self.converter.convert_gameschema_to_dict(removed), actor)

    async def find_by_slug(self, slug: str) -> GameSchema | None:
        return await self.store.find_one(slug)

    async def _cached_list(
        self,
        action: str,
        keys: tuple,
        params: dict,
        game_filter: GameFilter,
        actor_id: Any,
    ) -> dict:
        actor = self._optional_actor(actor_id)
        query = GameQuery(
            filters=game_filter,
            limit=params["limit"] or self.default_limit,
            offset=params["offset"] or 0,
        )
        key = build_cache_key(action, actor, params, keys)

        async def fetch() -> dict:
            rows_task = asyncio.ensure_future(self.store.find(query))
            count_task = asyncio.ensure_future(self.store.count(query.filters))
            try:
                rows, count = await asyncio.gather(rows_task, count_task)
            except Exception:
                # no partial result; the surviving query is not left running
                for task in (rows_task, count_task):
                    task.cancel()
                await asyncio.gather(rows_task, count_task, return_exceptions=True)
                raise
            docs = [self.converter.convert_gameschema_to_dict(row) for row in rows]
            await self.populator.populate(docs, self.populates)
            result = self.converter.transform_result(docs, actor)
            result["games_count"] = count
            return result

        return await self.cache.get_or_set(key, fetch, tags=[self.name], ttl_seconds=self.cache_ttl)

    async def _transform_game(self, game: GameSchema, actor: Optional[UUID]) -> dict:
        doc = self.converter.convert_gameschema_to_dict(game)
        await self.populator.populate([doc], self.populates)
        return self.converter.transform_result(doc, actor)

    async def _find_by_id(self, game_id: Any) -> GameSchema | None:
        try:
            game_id = normalize_id(game_id)
        except ValueError:
            return None
        return await self.store.find_by_id(game_id)

    async def _unique_slug(self, name: str) -> str:
        slug = self.slug_utils.generate(name)
        while await self.store.find_one(slug) is not None:
            logging.debug(f"Slug already taken: {slug}")
            slug = self.slug_utils.generate(name)
        return slug

    @staticmethod
    def _touch(previous: datetime) -> datetime:
        now = datetime.now()
        if now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    @staticmethod
    def _check_owner(game: GameSchema, actor: UUID) -> None:
        if normalize_id(game.creator_id) != actor:
            raise ForbiddenError()

    @staticmethod
    def _require_actor(actor_id: Any) -> UUID:
        if actor_id is None:
            raise UnauthenticatedError()
        try:
            return normalize_id(actor_id)
        except ValueError:
            raise UnauthenticatedError("Invalid user identity")

    @staticmethod
    def _optional_actor(actor_id: Any) -> Optional[UUID]:
        if actor_id is None:
            return None
        return GameService._require_actor(actor_id)

    @staticmethod
    def _validate(model: Type[T], data: Any) -> T:
        if isinstance(data, model):
            return data
        if data is None:
            data = {}
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

    @staticmethod
    def _parse_id(value: Any, field: str) -> Optional[UUID]:
        if value is None or value == "":
            return None
        try:
            return normalize_id(value)
        except ValueError:
            raise ValidationError([{"field": field, "message": "Value is not a valid id"}])

    @staticmethod
    def _parse_int(value: Any, field: str) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError([{"field": field, "message": "Value is not a valid integer"}])
        if number < 0:
            raise ValidationError([{"field": field, "message": "Value must not be negative"}])
        return number
