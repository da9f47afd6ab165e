"""Resolve foreign keys of stored games into embedded sub-objects.

A relation is resolved with one batched lookup per request: the distinct
keys of every entity are collected, fetched together with the relation's
projection, and attached back under the relation name. A failed lookup
leaves the relation empty instead of failing the read.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Sequence
from uuid import UUID

from games_api.converter import normalize_id

Fetch = Callable[[Iterable[UUID], Sequence[str]], Awaitable[Dict[UUID, dict]]]


@dataclass
class PopulateRule:
    field: str
    fetch: Fetch
    fields: List[str] = field(default_factory=list)


class Populator:
    def __init__(self, rules: Dict[str, PopulateRule]):
        self.rules: Dict[str, PopulateRule] = rules

    async def populate(self, entities: List[dict], relations: Iterable[str]) -> List[dict]:
        """Attach every requested relation to the entities in place

        Args:
            entities (List[dict]): Games as JSON ready dicts
            relations (Iterable[str]): Relation names, e.g. ["creator"]

        Returns:
            List[dict]: The same entities

        Raises:
            KeyError: A relation name has no rule
        """
        for relation in relations:
            rule = self.rules[relation]
            await self._populate_relation(entities, relation, rule)
        return entities

    async def _populate_relation(self, entities: List[dict], relation: str, rule: PopulateRule) -> None:
        keys = {}
        for entity in entities:
            key = self._foreign_key(entity.get(rule.field))
            if key is not None:
                keys[key] = None

        resolved: Dict[UUID, dict] = {}
        if keys:
            try:
                resolved = await rule.fetch(list(keys), rule.fields)
            except Exception as e:
                logging.warning(f"Failed to populate {relation}: {e}")
                resolved = {}

        for entity in entities:
            key = self._foreign_key(entity.get(rule.field))
            entity[relation] = resolved.get(key) if key is not None else None

    @staticmethod
    def _foreign_key(value: Any) -> UUID | None:
        if value is None:
            return None
        try:
            return normalize_id(value)
        except ValueError:
            logging.warning(f"Unresolvable foreign key: {value!r}")
            return None
