"""User lookup for subscriber validation and page fan-out."""

import uuid
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escalator.core.errors import NotFoundError
from escalator.database import get_session_maker
from escalator.models.user import User


class UserDirectory(Protocol):
    async def exists(self, user_id: uuid.UUID) -> bool: ...

    async def get(self, user_id: uuid.UUID) -> User: ...


class SqlUserDirectory:
    """UserDirectory backed by the ``users`` and ``devices`` tables."""

    def __init__(
        self, session_maker: async_sessionmaker[AsyncSession] | None = None
    ) -> None:
        self._session_maker = session_maker

    async def _find(self, user_id: uuid.UUID) -> User | None:
        maker = self._session_maker or get_session_maker()
        async with maker() as db:
            # devices load eagerly (selectin) so the user is usable detached
            result = await db.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def exists(self, user_id: uuid.UUID) -> bool:
        return await self._find(user_id) is not None

    async def get(self, user_id: uuid.UUID) -> User:
        user = await self._find(user_id)
        if user is None:
            raise NotFoundError(f"No such user exists: {user_id}")
        return user


class InMemoryUserDirectory:
    """Dictionary-backed UserDirectory for local development and tests."""

    def __init__(self, users: list[User] | None = None) -> None:
        self._users = {user.id: user for user in users or []}

    def add(self, user: User) -> User:
        self._users[user.id] = user
        return user

    async def exists(self, user_id: uuid.UUID) -> bool:
        return user_id in self._users

    async def get(self, user_id: uuid.UUID) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"No such user exists: {user_id}")
        return user
