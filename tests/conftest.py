"""Pytest configuration and shared fixtures.

The engine is exercised against in-memory stores and a virtual clock, so
no database or scheduler thread is needed.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set testing mode BEFORE importing app so the lifespan skips bulk loading
os.environ["TESTING"] = "true"

from escalator.config import settings

settings.testing = True
settings.queue_secret = "test-queue-secret"

from escalator.core.retry import RetryPolicy
from escalator.main import app
from escalator.models.escalation_policy import EscalationPolicy, Subscriber
from escalator.models.ticket import Ticket
from escalator.models.user import Device, User
from escalator.services.engine import EscalationEngine
from escalator.services.group_store import InMemoryGroupStore, new_group
from escalator.services.paging_queue import InMemoryPagingQueue
from escalator.services.ticket_store import InMemoryTicketStore
from escalator.services.timers import JobFunc, run_job
from escalator.services.user_directory import InMemoryUserDirectory

START = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class VirtualTimers:
    """TimerService on a manually advanced clock.

    Jobs run through ``run_job`` exactly as they would under APScheduler,
    in instant order, when ``advance_to`` moves the clock past them.
    """

    def __init__(self, start: datetime = START) -> None:
        self.current = start
        self.jobs: dict[str, tuple[datetime, JobFunc, tuple[Any, ...]]] = {}
        self.started = False

    def start(self) -> None:
        self.started = True

    def shutdown(self) -> None:
        self.started = False

    def now(self) -> datetime:
        return self.current

    def schedule(self, key: str, run_at: datetime, func: JobFunc, *args: Any) -> str:
        self.jobs[key] = (run_at, func, args)
        return key

    def cancel(self, key: str) -> bool:
        return self.jobs.pop(key, None) is not None

    def pending(self) -> dict[str, datetime]:
        return {key: job[0] for key, job in self.jobs.items()}

    async def advance_to(self, instant: datetime) -> None:
        while True:
            due = sorted(
                (run_at, key)
                for key, (run_at, _, _) in self.jobs.items()
                if run_at <= instant
            )
            if not due:
                break
            run_at, key = due[0]
            _, func, args = self.jobs.pop(key)
            self.current = max(self.current, run_at)
            await run_job(key, func, *args)
        self.current = max(self.current, instant)


def make_device(
    device_type: str = "email",
    position: int = 0,
    contact: str | None = None,
) -> Device:
    return Device(
        id=uuid.uuid4(),
        name=f"{device_type}-{position}",
        type=device_type,
        contact_information=contact or f"{device_type}-{position}@example.com",
        position=position,
    )


def make_user(
    device_types: list[str] | None = None,
    delays: list[int] | None = None,
    name: str = "Responder",
) -> User:
    user_id = uuid.uuid4()
    return User(
        id=user_id,
        name=name,
        email=f"{user_id.hex}@example.com",
        delays=list(delays or []),
        devices=[
            make_device(t, i)
            for i, t in enumerate(["email"] if device_types is None else device_types)
        ],
    )


def make_ticket(group_name: str = "ops", is_open: bool = True) -> Ticket:
    return Ticket(
        id=uuid.uuid4(),
        group_name=group_name,
        title="Disk full on db-1",
        description="/var is at 100%",
        is_open=is_open,
        page_ids=[],
    )


def make_policy(
    *user_ids: uuid.UUID,
    rotation_interval_days: int = 7,
    paging_interval_minutes: int = 10,
) -> EscalationPolicy:
    return EscalationPolicy(
        rotation_interval_days=rotation_interval_days,
        paging_interval_minutes=paging_interval_minutes,
        subscribers=tuple(Subscriber(user_id=u) for u in user_ids),
    )


@pytest.fixture
def timers() -> VirtualTimers:
    return VirtualTimers()


@pytest.fixture
def group_store() -> InMemoryGroupStore:
    return InMemoryGroupStore()


@pytest.fixture
def user_directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def ticket_store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def paging_queue() -> InMemoryPagingQueue:
    return InMemoryPagingQueue()


@pytest.fixture
def notifications() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def retry() -> RetryPolicy:
    return RetryPolicy(attempts=3, sleep=AsyncMock())


@pytest.fixture
def engine(
    timers, group_store, user_directory, ticket_store, paging_queue, notifications, retry
) -> EscalationEngine:
    return EscalationEngine(
        timers=timers,
        groups=group_store,
        users=user_directory,
        tickets=ticket_store,
        queue=paging_queue,
        notifications=notifications,
        retry=retry,
    )


@pytest_asyncio.fixture
async def ops_group(group_store, user_directory):
    """An ``ops`` group with three single-device subscribers."""
    users = [user_directory.add(make_user(name=n)) for n in ("ann", "bob", "cat")]
    group = await group_store.add(
        new_group(
            "ops",
            make_policy(*(u.id for u in users)),
            last_rotated=START,
        )
    )
    return group, users


@pytest_asyncio.fixture
async def client(engine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with the in-memory engine attached.

    ASGITransport does not run the lifespan, so the engine is set directly.
    """
    app.state.engine = engine
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.state.engine = None
