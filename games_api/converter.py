from typing import Any, List, Optional
from uuid import UUID

from games_api.models.schema_models import GameSchema


def normalize_id(value: Any) -> UUID:
    """Canonical form for every identifier crossing the service boundary.

    Raises:
        ValueError: The value is not a UUID in any accepted representation
    """
    if isinstance(value, UUID):
        return value
    if isinstance(value, bytes) and len(value) == 16:
        return UUID(bytes=value)
    return UUID(str(value).strip())


class DataConverter:
    """This class shapes stored games into the public response envelope."""

    def convert_gameschema_to_dict(self, game: GameSchema) -> dict:
        """Convert the GameSchema to a JSON ready dict

        Args:
            game (GameSchema): Game as read from the entity store

        Returns:
            dict: ids and timestamps rendered as strings, ready to cache or send
        """
        return game.model_dump(mode="json")

    def transform_entity(self, entity: Optional[dict], user: Optional[UUID]) -> Optional[dict]:
        """Per-user adjustment of one game; None stays None"""
        if entity is None:
            return None
        return entity

    def transform_result(self, entities: dict | List[dict] | None, user: Optional[UUID]) -> dict:
        """Wrap a game as {"game": ...} or a list as {"games": [...]}

        Args:
            entities (dict | List[dict] | None): Populated games
            user (Optional[UUID]): Requesting user, None when anonymous

        Returns:
            dict: The response envelope; a missing game yields {"game": None}
        """
        if isinstance(entities, list):
            games = [self.transform_entity(item, user) for item in entities]
            return {"games": games}
        game = self.transform_entity(entities, user)
        return {"game": game}
