import argparse
import asyncio
import hashlib
import logging
import secrets
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from uuid6 import uuid7

from games_api.cache_cleaner import CacheCleaner, topic_for
from games_api.load_secrets import pepper_data
from games_api.models.schema_models import UserSchema
from games_api.services.user_db import UserStore

security = HTTPBasic()
optional_security = HTTPBasic(auto_error=False)


class BasicAuthentication:
    def __init__(self, users: UserStore, cache_cleaner: Optional[CacheCleaner] = None, pepper: str = pepper_data):
        self.users: UserStore = users
        self.cache_cleaner: Optional[CacheCleaner] = cache_cleaner
        self.pepper: str = pepper

    def hash_password(self, password: str, salt: str) -> str:
        return hashlib.sha256((password + salt + self.pepper).encode()).hexdigest()

    async def check_user_data(self, credentials: HTTPBasicCredentials) -> UserSchema:
        """Check the credentials against the users table

        Args:
            credentials (HTTPBasicCredentials): Username and password of the request

        Raises:
            HTTPException: The user data is not found in the database
            HTTPException: The password is incorrect

        Returns:
            UserSchema: The authenticated user
        """
        user_data = await self.users.find_by_name(credentials.username)
        if user_data is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username",
                headers={"WWW-Authenticate": "Basic"},
            )

        hashed_password = self.hash_password(credentials.password, user_data.salt)
        if not secrets.compare_digest(hashed_password, user_data.hash_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid password",
                headers={"WWW-Authenticate": "Basic"},
            )
        return user_data

    async def store_user_data(
        self, user_name: str, password: str, bio: str = "", image: Optional[str] = None
    ) -> UserSchema:
        """Register a user; cached game lists embed users, so they are cleaned"""
        salt = secrets.token_hex(8)
        user = UserSchema(
            user_id=uuid7(),
            username=user_name,
            hash_password=self.hash_password(password, salt),
            salt=salt,
            bio=bio,
            image=image,
        )
        stored = await self.users.insert(user)
        logging.info(f"User stored: {stored.username}")
        if self.cache_cleaner is not None:
            await self.cache_cleaner.broadcast(topic_for("users"))
        return stored


async def get_current_user_id(
    request: Request, credentials: HTTPBasicCredentials = Depends(security)
) -> UUID:
    """Actor of a request that requires authentication"""
    basic_auth: BasicAuthentication = request.app.state.basic_auth
    user_data = await basic_auth.check_user_data(credentials)
    return user_data.user_id


async def get_optional_user_id(
    request: Request, credentials: Optional[HTTPBasicCredentials] = Depends(optional_security)
) -> Optional[UUID]:
    """Actor of a request, or None when the request is anonymous"""
    if credentials is None:
        return None
    basic_auth: BasicAuthentication = request.app.state.basic_auth
    user_data = await basic_auth.check_user_data(credentials)
    return user_data.user_id


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Basic Authentication")
    parser.add_argument("--username", type=str, help="Username", required=True)
    parser.add_argument("--password", type=str, help="Password", required=True)
    parser.add_argument("--bio", type=str, help="Profile text", default="")
    parser.add_argument("--image", type=str, help="Profile image URL", default=None)
    return parser


async def main(user_name: str, password: str, bio: str, image: Optional[str]):
    from games_api.db import Session, create_tables, engine
    from games_api.main import create_cache

    await create_tables(engine)
    cache, redis = create_cache()
    basic_auth = BasicAuthentication(UserStore(Session), CacheCleaner(cache, redis=redis))
    user_data = await basic_auth.store_user_data(user_name, password, bio, image)
    print(user_data.user_id, user_data.username)
    if redis is not None:
        await redis.aclose()
    await engine.dispose()


if __name__ == "__main__":
    parser = get_parser()
    args = parser.parse_args()
    asyncio.run(main(args.username, args.password, args.bio, args.image))
