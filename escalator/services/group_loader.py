"""Startup recovery of rotation and availability jobs.

Jobs are not persisted. On startup every group's ``last_rotated`` and every
subscriber's ``deactivate_date`` / ``reactivate_date`` are read back and the
matching jobs re-armed, which is the only recovery path after a restart or a
job that failed to re-arm.
"""

import uuid
from collections.abc import Callable, Collection
from datetime import datetime

from escalator.logging_config import get_logger
from escalator.models.escalation_policy import Subscriber
from escalator.models.group import Group
from escalator.services.availability import AvailabilityScheduler
from escalator.services.group_store import GroupStore
from escalator.services.rotation import RotationScheduler

logger = get_logger(__name__)


class BulkLoader:
    """Re-arms every job implied by persisted group state."""

    def __init__(
        self,
        groups: GroupStore,
        rotation: RotationScheduler,
        availability: AvailabilityScheduler,
    ) -> None:
        self._groups = groups
        self._rotation = rotation
        self._availability = availability

    async def _subscribers_where(
        self, predicate: Callable[[Subscriber], bool]
    ) -> list[tuple[Group, Subscriber]]:
        return [
            (group, subscriber)
            for group in await self._groups.list_groups(with_policy=True)
            for subscriber in group.policy.subscribers
            if predicate(subscriber)
        ]

    async def bulk_schedule_rotation(self) -> list[tuple[datetime, Group]]:
        """Arm the next rotation for every group that has a policy."""
        results = []
        for group in await self._groups.list_groups(with_policy=True):
            try:
                results.append(await self._rotation.schedule_rotation(group))
            except Exception:
                logger.exception("Failed to schedule rotation", group=group.name)
        logger.info("Group rotations scheduled", count=len(results))
        return results

    async def reschedule_deactivation(self) -> list[tuple[datetime, Group | None]]:
        """Re-arm every pending deactivation with its stored window."""
        results = []
        pending = await self._subscribers_where(lambda s: s.has_pending_deactivation)
        for group, subscriber in pending:
            try:
                results.append(
                    await self._availability.schedule_deactivation(
                        group,
                        subscriber.user_id,
                        subscriber.deactivate_date,
                        subscriber.reactivate_date,
                    )
                )
            except Exception:
                logger.exception(
                    "Failed to reschedule deactivation",
                    group=group.name,
                    user_id=str(subscriber.user_id),
                )
        logger.info("Subscriber deactivations rescheduled", count=len(results))
        return results

    async def reschedule_reactivation(
        self, skip: Collection[tuple[str, uuid.UUID]] = ()
    ) -> list[tuple[datetime | None, Group | None]]:
        """Re-arm every pending reactivation of an inactive subscriber.

        Args:
            skip: ``(group_name, user_id)`` pairs whose reactivation was
                already armed by an overdue deactivation in this load.
        """
        results = []
        pending = await self._subscribers_where(lambda s: s.has_pending_reactivation)
        for group, subscriber in pending:
            if (group.name, subscriber.user_id) in skip:
                continue
            try:
                results.append(
                    await self._availability.schedule_reactivation(
                        group, subscriber.user_id
                    )
                )
            except Exception:
                logger.exception(
                    "Failed to reschedule reactivation",
                    group=group.name,
                    user_id=str(subscriber.user_id),
                )
        logger.info("Subscriber reactivations rescheduled", count=len(results))
        return results

    async def load_all(self) -> dict[str, int]:
        """Rebuild every rotation, deactivation and reactivation job.

        Returns:
            How many jobs of each kind were handled.
        """
        rotations = await self.bulk_schedule_rotation()
        handled = {
            (group.name, subscriber.user_id)
            for group, subscriber in await self._subscribers_where(
                lambda s: s.has_pending_deactivation
            )
        }
        deactivations = await self.reschedule_deactivation()
        reactivations = await self.reschedule_reactivation(skip=handled)
        return {
            "rotations": len(rotations),
            "deactivations": len(deactivations),
            "reactivations": len(reactivations),
        }
