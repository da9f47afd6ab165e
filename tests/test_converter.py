from datetime import datetime
from uuid import UUID

import pytest
from uuid6 import uuid7

from games_api.converter import DataConverter, normalize_id
from games_api.models.schema_models import GameSchema

converter = DataConverter()


def test_normalize_id_accepts_every_representation():
    user_id = uuid7()
    assert normalize_id(user_id) == user_id
    assert normalize_id(str(user_id)) == user_id
    assert normalize_id(str(user_id).upper()) == user_id
    assert normalize_id(user_id.bytes) == user_id


def test_normalize_id_rejects_garbage():
    with pytest.raises(ValueError):
        normalize_id("not-an-id")


def test_convert_gameschema_renders_json_types():
    game = GameSchema(
        game_id=uuid7(),
        slug="chess-abc123",
        name="Chess",
        description="Board game",
        creator_id=uuid7(),
        created_at=datetime(2024, 1, 2, 3, 4, 5),
        updated_at=datetime(2024, 1, 2, 3, 4, 5),
    )

    doc = converter.convert_gameschema_to_dict(game)

    assert UUID(doc["game_id"]) == game.game_id
    assert doc["created_at"] == "2024-01-02T03:04:05"
    assert doc["tag_list"] == []


def test_transform_result_shapes():
    assert converter.transform_result({"name": "Chess"}, None) == {"game": {"name": "Chess"}}
    assert converter.transform_result([{"name": "Chess"}], None) == {"games": [{"name": "Chess"}]}
    assert converter.transform_result([], None) == {"games": []}


def test_missing_game_yields_null():
    assert converter.transform_result(None, uuid7()) == {"game": None}
