import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Request, status

from games_api.authentication.basic_authentication import (
    get_current_user_id,
    get_optional_user_id,
)
from games_api.models.dc_models import ErrorModel, GameListModel, GameResponseModel
from games_api.services.game_service import GameService

games_router = APIRouter(prefix="/api/games", tags=["games"])

UNAUTHENTICATED = {401: {"model": ErrorModel, "description": "Missing or invalid credentials"}}
FORBIDDEN = {403: {"model": ErrorModel, "description": "Only the creator may modify the game"}}
NOT_FOUND = {404: {"model": ErrorModel, "description": "No game matches"}}


def get_game_service(request: Request) -> GameService:
    return request.app.state.game_service


class GamesAPI:
    @staticmethod
    @games_router.post(
        "", response_model=GameResponseModel, status_code=status.HTTP_201_CREATED, responses=UNAUTHENTICATED
    )
    async def create_game(
        game: dict = Body(..., embed=True),
        user_id: UUID = Depends(get_current_user_id),
        game_service: GameService = Depends(get_game_service),
    ):
        return await game_service.create(game, user_id)

    @staticmethod
    @games_router.put(
        "/{game_id}", response_model=GameResponseModel, responses={**UNAUTHENTICATED, **FORBIDDEN, **NOT_FOUND}
    )
    async def update_game(
        game_id: str,
        game: dict = Body(..., embed=True),
        user_id: UUID = Depends(get_current_user_id),
        game_service: GameService = Depends(get_game_service),
    ):
        return await game_service.update(game_id, game, user_id)

    @staticmethod
    @games_router.get("", response_model=GameListModel, responses=UNAUTHENTICATED)
    async def list_games(
        tag: Optional[str] = None,
        creator: Optional[str] = None,
        limit: Optional[int] = Query(default=None, ge=0),
        offset: Optional[int] = Query(default=None, ge=0),
        user_id: Optional[UUID] = Depends(get_optional_user_id),
        game_service: GameService = Depends(get_game_service),
    ):
        logging.debug(f"list games tag={tag} creator={creator} limit={limit} offset={offset}")
        return await game_service.list({"tag": tag, "creator": creator}, limit, offset, user_id)

    @staticmethod
    @games_router.get("/creator/{creator_id}", response_model=GameListModel, responses=UNAUTHENTICATED)
    async def list_games_by_user(
        creator_id: str,
        limit: Optional[int] = Query(default=None, ge=0),
        offset: Optional[int] = Query(default=None, ge=0),
        user_id: Optional[UUID] = Depends(get_optional_user_id),
        game_service: GameService = Depends(get_game_service),
    ):
        return await game_service.list_by_user(creator_id, limit, offset, user_id)

    @staticmethod
    @games_router.get("/{slug}", response_model=GameResponseModel, responses={**UNAUTHENTICATED, **NOT_FOUND})
    async def get_game(
        slug: str,
        user_id: Optional[UUID] = Depends(get_optional_user_id),
        game_service: GameService = Depends(get_game_service),
    ):
        return await game_service.get(slug, user_id)

    @staticmethod
    @games_router.delete(
        "/{slug}", response_model=GameResponseModel, responses={**UNAUTHENTICATED, **FORBIDDEN, **NOT_FOUND}
    )
    async def remove_game(
        slug: str,
        user_id: UUID = Depends(get_current_user_id),
        game_service: GameService = Depends(get_game_service),
    ):
        return await game_service.remove(slug, user_id)
