from pydantic import BaseModel
from typing import Optional, Tuple
from uuid import UUID
from datetime import datetime


class GameSchema(BaseModel):
    game_id: UUID
    slug: str
    name: str
    description: str
    tag_list: list[str] = []
    creator_id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserSchema(BaseModel):
    user_id: UUID
    username: str
    hash_password: str
    salt: str
    bio: Optional[str] = ""
    image: Optional[str] = None

    class Config:
        from_attributes = True


class GameFilter(BaseModel):
    """Filter snapshot shared by the row fetch and the count of one request."""

    tag: Optional[str] = None
    creator_id: Optional[UUID] = None

    class Config:
        frozen = True


class GameQuery(BaseModel):
    filters: GameFilter = GameFilter()
    limit: Optional[int] = None
    offset: Optional[int] = None
    sort: Tuple[str, ...] = ("-created_at",)

    class Config:
        frozen = True
