"""One-shot job timers for rotation and availability transitions.

All escalation jobs are absolute-instant, one-shot jobs keyed by what they
act on (``rotation:<group>``, ``deactivate:<group>:<user>``, ...). Arming a
key that is already pending replaces the earlier job, so re-arming never
double-fires. Jobs live only in memory; ``BulkLoader`` rebuilds them from
the persisted policy fields on startup.
"""

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from escalator.config import settings
from escalator.logging_config import get_logger, job_id_ctx

logger = get_logger(__name__)

JobFunc = Callable[..., Awaitable[Any]]


def rotation_job_key(group_name: str) -> str:
    return f"rotation:{group_name}"


def deactivation_job_key(group_name: str, user_id: uuid.UUID) -> str:
    return f"deactivate:{group_name}:{user_id}"


def reactivation_job_key(group_name: str, user_id: uuid.UUID) -> str:
    return f"reactivate:{group_name}:{user_id}"


class TimerService(Protocol):
    """Clock plus one-shot job registry used by the schedulers."""

    def start(self) -> None: ...

    def shutdown(self) -> None: ...

    def now(self) -> datetime: ...

    def schedule(
        self, key: str, run_at: datetime, func: JobFunc, *args: Any
    ) -> str: ...

    def cancel(self, key: str) -> bool: ...

    def pending(self) -> dict[str, datetime]: ...


@dataclass(frozen=True)
class RepeatingTask:
    """A recurring job described by its next instant and how to derive the one after.

    ``compute_next`` receives the state produced by the run that just
    finished and returns the following instant.
    """

    key: str
    next_instant: datetime
    compute_next: Callable[[Any], datetime]

    def following(self, state: Any) -> "RepeatingTask":
        return replace(self, next_instant=self.compute_next(state))


async def run_job(key: str, func: JobFunc, *args: Any) -> None:
    """Run a scheduled job to completion without letting it escape.

    A failing job is logged and simply not re-armed; the next startup
    rebuilds it from persisted state.
    """
    token = job_id_ctx.set(key)
    try:
        await func(*args)
    except Exception:
        logger.exception("Scheduled job failed", job=key)
    finally:
        job_id_ctx.reset(token)


class APSchedulerTimers:
    """TimerService backed by APScheduler's AsyncIOScheduler."""

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone=UTC)

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Timer service started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Timer service stopped")

    def now(self) -> datetime:
        return datetime.now(UTC)

    def schedule(self, key: str, run_at: datetime, func: JobFunc, *args: Any) -> str:
        self._scheduler.add_job(
            run_job,
            trigger=DateTrigger(run_date=run_at),
            args=[key, func, *args],
            id=key,
            name=key,
            replace_existing=True,
            misfire_grace_time=settings.scheduler_misfire_grace_seconds,
        )
        logger.debug("Job armed", job=key, run_at=run_at.isoformat())
        return key

    def cancel(self, key: str) -> bool:
        try:
            self._scheduler.remove_job(key)
        except JobLookupError:
            return False
        logger.debug("Job cancelled", job=key)
        return True

    def pending(self) -> dict[str, datetime]:
        return {job.id: job.trigger.run_date for job in self._scheduler.get_jobs()}
