"""Escalation policy rotation.

Every ``rotation_interval_days`` the first subscriber of a group's policy
moves to the back of the line, changing who is first on call. Each rotation
is a one-shot job that re-arms the next one when it finishes.
"""

from datetime import UTC, datetime, timedelta

from escalator.config import settings
from escalator.core.errors import NotFoundError, ValidationError
from escalator.logging_config import get_logger
from escalator.models.group import Group
from escalator.services.group_store import GroupStore
from escalator.services.timers import RepeatingTask, TimerService, rotation_job_key

logger = get_logger(__name__)


def next_rotation_instant(last_rotated: datetime, rotation_interval_days: int) -> datetime:
    """Return the end-of-day instant ``rotation_interval_days`` after the last rotation.

    The result is always later than ``last_rotated``; a zero interval
    therefore means "at the end of every day".
    """
    if last_rotated.tzinfo is None:
        last_rotated = last_rotated.replace(tzinfo=UTC)

    target = (last_rotated + timedelta(days=rotation_interval_days)).replace(
        hour=settings.rotation_hour,
        minute=settings.rotation_minute,
        second=0,
        microsecond=0,
    )
    if target <= last_rotated:
        target += timedelta(days=1)
    return target


def _rotation_instant_for(group: Group) -> datetime:
    return next_rotation_instant(group.last_rotated, group.rotation_interval_days)


def rotation_task(group: Group) -> RepeatingTask:
    """Describe the recurring rotation job for ``group``."""
    return RepeatingTask(
        key=rotation_job_key(group.name),
        next_instant=_rotation_instant_for(group),
        compute_next=_rotation_instant_for,
    )


class RotationScheduler:
    """Arms and runs rotation jobs."""

    def __init__(self, groups: GroupStore, timers: TimerService) -> None:
        self._groups = groups
        self._timers = timers

    def _arm(self, group_name: str, task: RepeatingTask) -> None:
        # An overdue rotation (e.g. after downtime) runs as soon as possible
        run_at = max(task.next_instant, self._timers.now())
        self._timers.schedule(task.key, run_at, self.rotate, group_name, task)

    async def schedule_rotation(self, group: Group) -> tuple[datetime, Group]:
        """Arm the next rotation for ``group``, replacing any pending one.

        Returns:
            The instant the rotation will fire and the group.

        Raises:
            ValidationError: If the group has no escalation policy.
        """
        if group.policy is None:
            raise ValidationError(f"Group {group.name} has no escalation policy")

        task = rotation_task(group)
        self._arm(group.name, task)

        logger.info(
            "Scheduled escalation policy rotation",
            group=group.name,
            next_rotation_at=task.next_instant.isoformat(),
        )
        return task.next_instant, group

    async def rotate(
        self, group_name: str, task: RepeatingTask | None = None
    ) -> Group | None:
        """Rotate the group's subscribers once and arm the following rotation.

        Returns:
            The rotated group, or None if the group (or its policy) is gone.
        """
        now = self._timers.now()

        def _apply(group: Group) -> None:
            policy = group.policy
            if policy is None:
                return
            group.policy = policy.rotated()
            group.last_rotated = now

        try:
            group = await self._groups.update(group_name, _apply)
        except NotFoundError:
            logger.info("Group no longer exists, dropping rotation", group=group_name)
            return None

        policy = group.policy
        if policy is None:
            logger.info("Group has no escalation policy, rotation stopped", group=group_name)
            return None

        logger.info(
            "Rotated escalation policy",
            group=group_name,
            subscriber_count=len(policy.subscribers),
            first_on_call=str(policy.subscribers[0].user_id) if policy.subscribers else None,
        )

        next_task = task.following(group) if task else rotation_task(group)
        self._arm(group_name, next_task)
        return group
