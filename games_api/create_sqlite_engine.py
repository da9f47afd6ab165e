import logging
import pathlib

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from games_api.load_secrets import sqlite_path

logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def create_sqlite_engine(path: str | pathlib.Path = sqlite_path) -> AsyncEngine:
    """Create an aiosqlite engine for a database file.

    Every session gets its own connection, so the row fetch and the count
    of a list request can run at the same time.
    """
    file_path = pathlib.Path(path).resolve()
    sqlite_url = f"sqlite+aiosqlite:///{file_path}"
    return create_async_engine(url=sqlite_url, echo=False)
