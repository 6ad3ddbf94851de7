"""Subscriber deactivation and reactivation.

A subscriber can be taken off a group's escalation path for a window
without changing their place in the rotation. The requested dates are
persisted first, so the intent survives a restart even if the timer is lost;
each transition then either runs inline (already due) or is armed as a
one-shot job. Due-ness is always judged against the clock at decision time.
"""

import uuid
from datetime import UTC, datetime

from escalator.core.errors import NotFoundError, ValidationError
from escalator.logging_config import get_logger
from escalator.models.escalation_policy import Subscriber
from escalator.models.group import Group
from escalator.services.group_store import GroupStore
from escalator.services.timers import (
    TimerService,
    deactivation_job_key,
    reactivation_job_key,
)

logger = get_logger(__name__)


def _subscriber(group: Group, user_id: uuid.UUID) -> Subscriber:
    policy = group.policy
    if policy is None:
        raise ValidationError(f"Group {group.name} has no escalation policy")
    subscriber = policy.find_subscriber(user_id)
    if subscriber is None:
        raise NotFoundError(f"User {user_id} is not subscribed to group {group.name}")
    return subscriber


def _replace(group: Group, subscriber: Subscriber) -> None:
    group.policy = group.policy.replace_subscriber(subscriber)


def _as_utc(value: datetime | None) -> datetime | None:
    """Treat naive instants as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class AvailabilityScheduler:
    """Schedules and applies subscriber availability transitions."""

    def __init__(self, groups: GroupStore, timers: TimerService) -> None:
        self._groups = groups
        self._timers = timers

    async def schedule_deactivation(
        self,
        group: Group,
        user_id: uuid.UUID,
        deactivate_at: datetime,
        reactivate_at: datetime | None = None,
    ) -> tuple[datetime, Group | None]:
        """Record a deactivation window and arm (or run) the deactivation.

        Returns:
            When the deactivation takes effect, and the group as it stands
            after any inline transitions.

        Raises:
            ValidationError: If the window ends before it starts or the group
                has no policy.
            NotFoundError: If the group or subscriber does not exist.
        """
        deactivate_at = _as_utc(deactivate_at)
        reactivate_at = _as_utc(reactivate_at)
        if reactivate_at is not None and reactivate_at <= deactivate_at:
            raise ValidationError("reactivate_at must be after deactivate_at")

        def _store_window(g: Group) -> None:
            subscriber = _subscriber(g, user_id)
            _replace(g, subscriber.with_window(deactivate_at, reactivate_at))

        group = await self._groups.update(group.name, _store_window)
        # The new window supersedes whatever return time was pending
        self._timers.cancel(reactivation_job_key(group.name, user_id))

        now = self._timers.now()
        if deactivate_at <= now:
            logger.info(
                "Deactivation already due, applying now",
                group=group.name,
                user_id=str(user_id),
            )
            return now, await self.deactivate(group.name, user_id)

        self._timers.schedule(
            deactivation_job_key(group.name, user_id),
            deactivate_at,
            self._on_deactivation_due,
            group.name,
            user_id,
        )
        logger.info(
            "Scheduled subscriber deactivation",
            group=group.name,
            user_id=str(user_id),
            deactivate_at=deactivate_at.isoformat(),
        )
        return deactivate_at, group

    async def schedule_reactivation(
        self, group: Group, user_id: uuid.UUID
    ) -> tuple[datetime | None, Group | None]:
        """Arm (or run) the reactivation stored on the subscriber.

        A subscriber without a ``reactivate_date`` stays inactive until a new
        request arrives; nothing is armed and the instant returned is None.

        Raises:
            NotFoundError: If the group or subscriber does not exist.
        """
        group = await self._groups.get(group.name)
        subscriber = _subscriber(group, user_id)
        reactivate_at = subscriber.reactivate_date

        if reactivate_at is None:
            logger.info(
                "No reactivation date set, subscriber stays inactive",
                group=group.name,
                user_id=str(user_id),
            )
            return None, group

        now = self._timers.now()
        if reactivate_at <= now:
            return now, await self.reactivate(group.name, user_id)

        self._timers.schedule(
            reactivation_job_key(group.name, user_id),
            reactivate_at,
            self._on_reactivation_due,
            group.name,
            user_id,
        )
        logger.info(
            "Scheduled subscriber reactivation",
            group=group.name,
            user_id=str(user_id),
            reactivate_at=reactivate_at.isoformat(),
        )
        return reactivate_at, group

    async def deactivate(self, group_name: str, user_id: uuid.UUID) -> Group | None:
        """Mark the subscriber inactive, then hand over to reactivation.

        Returns None when the group or subscriber has disappeared.
        """

        def _apply(g: Group) -> None:
            _replace(g, _subscriber(g, user_id).deactivated())

        try:
            group = await self._groups.update(group_name, _apply)
        except NotFoundError:
            logger.info(
                "Group or subscriber gone, skipping deactivation",
                group=group_name,
                user_id=str(user_id),
            )
            return None

        logger.info("Subscriber deactivated", group=group_name, user_id=str(user_id))
        _, group = await self.schedule_reactivation(group, user_id)
        return group

    async def reactivate(self, group_name: str, user_id: uuid.UUID) -> Group | None:
        """Mark the subscriber active again. Never re-arms itself."""

        def _apply(g: Group) -> None:
            _replace(g, _subscriber(g, user_id).reactivated())

        try:
            group = await self._groups.update(group_name, _apply)
        except NotFoundError:
            logger.info(
                "Group or subscriber gone, skipping reactivation",
                group=group_name,
                user_id=str(user_id),
            )
            return None

        logger.info("Subscriber reactivated", group=group_name, user_id=str(user_id))
        return group

    async def _current_subscriber(
        self, group_name: str, user_id: uuid.UUID
    ) -> tuple[Group, Subscriber] | None:
        try:
            group = await self._groups.get(group_name)
            return group, _subscriber(group, user_id)
        except (NotFoundError, ValidationError):
            return None

    async def _on_deactivation_due(self, group_name: str, user_id: uuid.UUID) -> None:
        found = await self._current_subscriber(group_name, user_id)
        if found is None:
            logger.info("Deactivation target gone", group=group_name, user_id=str(user_id))
            return
        group, subscriber = found

        if subscriber.deactivate_date is None:
            logger.info("Deactivation withdrawn", group=group_name, user_id=str(user_id))
            return
        if subscriber.deactivate_date > self._timers.now():
            # Moved to a later date after this job was armed
            self._timers.schedule(
                deactivation_job_key(group_name, user_id),
                subscriber.deactivate_date,
                self._on_deactivation_due,
                group_name,
                user_id,
            )
            return

        await self.deactivate(group_name, user_id)

    async def _on_reactivation_due(self, group_name: str, user_id: uuid.UUID) -> None:
        found = await self._current_subscriber(group_name, user_id)
        if found is None:
            logger.info("Reactivation target gone", group=group_name, user_id=str(user_id))
            return
        group, subscriber = found

        if subscriber.active:
            logger.info("Subscriber already active", group=group_name, user_id=str(user_id))
            return

        await self.schedule_reactivation(group, user_id)
