"""Group persistence for the escalation engine.

Rotation and availability transitions are read-modify-write operations on
the same subscriber list. ``update`` serialises them per group with an
in-process lock; the SQL store also relies on the group's ``version_id``
token and retries when another process committed in between.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from escalator.core.errors import ConflictError, NotFoundError
from escalator.database import get_session_maker
from escalator.logging_config import get_logger
from escalator.models.escalation_policy import EscalationPolicy
from escalator.models.group import Group

logger = get_logger(__name__)

GroupMutation = Callable[[Group], None]


class GroupStore(Protocol):
    async def get(self, name: str) -> Group: ...

    async def add(self, group: Group) -> Group: ...

    async def update(self, name: str, mutate: GroupMutation) -> Group: ...

    async def list_groups(self, *, with_policy: bool = False) -> list[Group]: ...


def new_group(
    name: str,
    policy: EscalationPolicy | None = None,
    *,
    members: list[str] | None = None,
    last_rotated: datetime | None = None,
) -> Group:
    """Build an unsaved Group with every column populated.

    Column defaults only apply on flush, so groups held by the in-memory
    store need them set explicitly.
    """
    now = datetime.now(UTC)
    group = Group(
        name=name,
        members=list(members or []),
        last_rotated=last_rotated or now,
        version_id=1,
        created_at=now,
        updated_at=now,
    )
    group.policy = policy if policy is not None else EscalationPolicy()
    if policy is None:
        group.policy_enabled = False
    return group


class GroupLocks:
    """One asyncio.Lock per group name."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        async with self._locks[name]:
            yield


def _not_found(name: str) -> NotFoundError:
    return NotFoundError(f"No such group exists: {name}")


class SqlGroupStore:
    """GroupStore backed by the ``groups`` table."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        *,
        max_attempts: int = 3,
    ) -> None:
        self._session_maker = session_maker
        self._max_attempts = max_attempts
        self._locks = GroupLocks()

    def _session(self) -> AsyncSession:
        maker = self._session_maker or get_session_maker()
        return maker()

    @staticmethod
    async def _load(db: AsyncSession, name: str) -> Group | None:
        result = await db.execute(select(Group).where(Group.name == name))
        return result.scalar_one_or_none()

    async def get(self, name: str) -> Group:
        async with self._session() as db:
            group = await self._load(db, name)
        if group is None:
            raise _not_found(name)
        return group

    async def add(self, group: Group) -> Group:
        async with self._session() as db:
            db.add(group)
            await db.commit()
            await db.refresh(group)
        return group

    async def update(self, name: str, mutate: GroupMutation) -> Group:
        """Apply ``mutate`` to a freshly loaded group and commit it.

        Raises:
            NotFoundError: The group no longer exists.
            ConflictError: Every attempt lost an optimistic-lock race.
        """
        async with self._locks.hold(name):
            for attempt in range(1, self._max_attempts + 1):
                async with self._session() as db:
                    group = await self._load(db, name)
                    if group is None:
                        raise _not_found(name)
                    mutate(group)
                    try:
                        await db.commit()
                    except StaleDataError:
                        await db.rollback()
                        logger.warning(
                            "Group changed concurrently, retrying update",
                            group=name,
                            attempt=attempt,
                        )
                        continue
                    return group

        raise ConflictError(
            f"Group {name} was modified concurrently {self._max_attempts} times"
        )

    async def list_groups(self, *, with_policy: bool = False) -> list[Group]:
        query = select(Group).order_by(Group.name)
        if with_policy:
            query = query.where(Group.policy_enabled.is_(True))
        async with self._session() as db:
            result = await db.execute(query)
            return list(result.scalars().all())


def _copy_group(group: Group) -> Group:
    return Group(
        id=group.id,
        name=group.name,
        members=list(group.members),
        policy_enabled=group.policy_enabled,
        rotation_interval_days=group.rotation_interval_days,
        paging_interval_minutes=group.paging_interval_minutes,
        subscribers=[dict(s) for s in group.subscribers],
        last_rotated=group.last_rotated,
        version_id=group.version_id,
        created_at=group.created_at,
        updated_at=group.updated_at,
    )


class InMemoryGroupStore:
    """Dictionary-backed GroupStore for local development and tests.

    Returns copies so callers never share state with the stored record.
    """

    def __init__(self, groups: list[Group] | None = None) -> None:
        self._groups: dict[str, Group] = {}
        self._locks = GroupLocks()
        for group in groups or []:
            self._groups[group.name] = _copy_group(group)

    async def get(self, name: str) -> Group:
        group = self._groups.get(name)
        if group is None:
            raise _not_found(name)
        return _copy_group(group)

    async def add(self, group: Group) -> Group:
        if group.name in self._groups:
            raise ConflictError(f"Group already exists: {group.name}")
        self._groups[group.name] = _copy_group(group)
        return _copy_group(group)

    async def update(self, name: str, mutate: GroupMutation) -> Group:
        async with self._locks.hold(name):
            current = self._groups.get(name)
            if current is None:
                raise _not_found(name)
            group = _copy_group(current)
            mutate(group)
            group.version_id = current.version_id + 1
            group.updated_at = datetime.now(UTC)
            self._groups[name] = group
            return _copy_group(group)

    async def delete(self, name: str) -> None:
        if self._groups.pop(name, None) is None:
            raise _not_found(name)

    async def list_groups(self, *, with_policy: bool = False) -> list[Group]:
        groups = sorted(self._groups.values(), key=lambda g: g.name)
        if with_policy:
            groups = [g for g in groups if g.policy_enabled]
        return [_copy_group(g) for g in groups]
