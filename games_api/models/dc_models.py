from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class GameCreateModel(BaseModel):
    """Fields a client may send when creating a game."""

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    tag_list: List[str] = []

    class Config:
        str_strip_whitespace = True


class GameUpdateModel(BaseModel):
    """Partial update; omitted fields are left untouched."""

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)

    @field_validator("name", "description")
    @classmethod
    def not_null(cls, value):
        # defaults are not validated, so only an explicit null lands here
        if value is None:
            raise ValueError("Field may not be null")
        return value

    class Config:
        str_strip_whitespace = True


class CreatorModel(BaseModel):
    username: str
    bio: Optional[str] = None
    image: Optional[str] = None


class GameModel(BaseModel):
    game_id: str
    slug: str
    name: str
    description: str
    tag_list: List[str] = []
    creator_id: str
    creator: Optional[CreatorModel] = None
    created_at: datetime
    updated_at: datetime


class GameResponseModel(BaseModel):
    game: Optional[GameModel] = None


class GameListModel(BaseModel):
    games: List[GameModel]
    games_count: int


class ErrorDetailModel(BaseModel):
    field: str
    message: str


class ErrorModel(BaseModel):
    detail: str
    errors: List[ErrorDetailModel] = []
