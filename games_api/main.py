import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from games_api.authentication.basic_authentication import BasicAuthentication
from games_api.cache import CacheManager, MemoryCache, RedisCache
from games_api.cache_cleaner import CacheCleaner
from games_api.errors import GameServiceError
from games_api.load_secrets import (
    cache_backend,
    cache_cleanup_minutes,
    cache_ttl,
    default_page_limit,
    log_level,
    redis_host,
    redis_port,
)
from games_api.populator import PopulateRule, Populator
from games_api.routers import games
from games_api.services.game_db import GameStore
from games_api.services.game_service import GameService
from games_api.services.user_db import UserStore

logging.basicConfig(level=log_level)

CREATOR_FIELDS = ["username", "bio", "image"]


def create_cache() -> Tuple[CacheManager, Optional[Redis]]:
    """Cache backend selected by CACHE_BACKEND; the Redis client is returned for pub/sub"""
    if cache_backend == "redis":
        redis = Redis(host=redis_host, port=redis_port, decode_responses=True, health_check_interval=30)
        return RedisCache(redis), redis
    return MemoryCache(), None


def create_game_service(Session: async_sessionmaker, cache: CacheManager, cache_cleaner: CacheCleaner) -> GameService:
    users = UserStore(Session)
    populator = Populator(
        {"creator": PopulateRule(field="creator_id", fetch=users.get, fields=CREATOR_FIELDS)}
    )
    return GameService(
        store=GameStore(Session),
        populator=populator,
        cache=cache,
        cache_cleaner=cache_cleaner,
        default_limit=default_page_limit,
        cache_ttl=cache_ttl,
    )


async def handle_game_service_error(request: Request, exc: GameServiceError) -> JSONResponse:
    logging.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(
    Session: Optional[async_sessionmaker] = None,
    engine: Optional[AsyncEngine] = None,
    cache: Optional[CacheManager] = None,
    redis: Optional[Redis] = None,
) -> FastAPI:
    """Build the application around a session factory and a cache

    Without arguments the configured database and cache backend are used.
    """
    if Session is None:
        from games_api.db import Session, engine
    if cache is None:
        cache, redis = create_cache()

    cache_cleaner = CacheCleaner(cache, redis=redis)
    scheduler = AsyncIOScheduler()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the tables and start the cache housekeeping.
        This function is called to start the server.
        """
        if engine is not None:
            from games_api.db import create_tables

            await create_tables(engine)

        # Drop expired entries the TTL alone would leave in memory
        scheduler.add_job(cache.cleanup_expired, "interval", minutes=cache_cleanup_minutes)
        scheduler.start()
        listener = asyncio.create_task(cache_cleaner.listen()) if redis is not None else None
        try:
            yield
        finally:
            scheduler.shutdown()
            if listener is not None:
                listener.cancel()
                await asyncio.gather(listener, return_exceptions=True)
                await redis.aclose()
            logging.info("Stop Server")

    app = FastAPI(lifespan=lifespan)
    app.state.cache = cache
    app.state.cache_cleaner = cache_cleaner
    app.state.game_service = create_game_service(Session, cache, cache_cleaner)
    app.state.basic_auth = BasicAuthentication(UserStore(Session), cache_cleaner)
    app.add_exception_handler(GameServiceError, handle_game_service_error)
    app.include_router(games.games_router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("games_api.main:create_app", factory=True, host="0.0.0.0", port=8080)
