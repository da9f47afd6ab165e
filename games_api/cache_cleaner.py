import logging
from typing import Dict, Iterable, List, Optional

from redis.asyncio import Redis

from games_api.cache import CacheManager

CHANNEL = "cache.clean"
GAMES_GROUP = "games"

# Cached game lists embed their creator, so user changes clean them too
DEFAULT_SUBSCRIPTIONS: Dict[str, List[str]] = {
    "cache.clean.games": [GAMES_GROUP],
    "cache.clean.users": [GAMES_GROUP],
}


def topic_for(group: str) -> str:
    return f"{CHANNEL}.{group}"


class CacheCleaner:
    """Turn entity change events into cache group invalidations.

    Topics are applied to the local cache right away. With Redis the topic
    is also published on the "cache.clean" channel so that every other
    worker running listen() drops the same groups.
    """

    def __init__(
        self,
        cache: CacheManager,
        subscriptions: Optional[Dict[str, Iterable[str]]] = None,
        redis: Optional[Redis] = None,
    ):
        self.cache: CacheManager = cache
        self.subscriptions: Dict[str, List[str]] = {
            topic: list(groups)
            for topic, groups in (subscriptions or DEFAULT_SUBSCRIPTIONS).items()
        }
        self.redis: Optional[Redis] = redis

    async def entity_changed(self, event: str, group: str) -> None:
        """Signal that an entity of a group was created, updated or removed

        Args:
            event (str): "created", "updated" or "removed"
            group (str): Invalidation group of the entity, e.g. "games"
        """
        logging.debug(f"Entity {event} in group '{group}'")
        await self.broadcast(topic_for(group))

    async def broadcast(self, topic: str) -> None:
        await self.clean(topic)
        if self.redis is not None:
            await self.redis.publish(CHANNEL, topic)

    async def clean(self, topic: str) -> None:
        """Invalidate every group subscribed to the topic"""
        for group in self.subscriptions.get(topic, []):
            await self.cache.invalidate_group(group)

    async def listen(self) -> None:
        """Apply topics published by other workers until cancelled

        A worker also receives its own publications; cleaning twice is harmless.
        """
        if self.redis is None:
            return
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(CHANNEL)
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if msg and msg["type"] == "message":
                    topic = msg["data"]
                    if isinstance(topic, bytes):
                        topic = topic.decode()
                    logging.debug(f"Received cache clean topic: {topic}")
                    await self.clean(topic)
        finally:
            logging.info("Unsubscribing from channel")
            await pubsub.unsubscribe(CHANNEL)
            await pubsub.aclose()
