from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.schema import Column, ForeignKey
from sqlalchemy.types import Integer, String, Uuid, DateTime, TEXT
from uuid6 import uuid7
from datetime import datetime


class Base(DeclarativeBase):
    pass


class Game(Base):
    __tablename__ = "games"
    game_id = Column(Uuid, primary_key=True, default=uuid7)
    slug = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(TEXT, nullable=False)
    creator_id = Column(Uuid, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now)

    tags = relationship(
        "GameTag",
        back_populates="game",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GameTag.position",
    )

    @property
    def tag_list(self) -> list[str]:
        return [tag.tag for tag in self.tags]


class GameTag(Base):
    __tablename__ = "game_tags"
    game_id = Column(
        Uuid, ForeignKey("games.game_id", ondelete="CASCADE"), primary_key=True
    )
    tag = Column(String, primary_key=True, index=True)
    position = Column(Integer, default=0)

    game = relationship("Game", back_populates="tags")


class User(Base):
    __tablename__ = "users"
    user_id = Column(Uuid, primary_key=True, default=uuid7)
    username = Column(String, unique=True, index=True, nullable=False)
    hash_password = Column(String)
    salt = Column(String)
    bio = Column(TEXT, default="")
    image = Column(String, nullable=True)
