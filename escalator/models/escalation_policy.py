"""Escalation policy value objects.

An escalation policy is embedded in its Group row. Both classes here are
immutable: rotation and availability transitions build a new policy and the
group store persists it in a single write, so an update can never be lost to
in-place mutation of the embedded list.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any


def _parse_instant(value: str | None) -> datetime | None:
    if value is None:
        return None
    instant = datetime.fromisoformat(value)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant


def _format_instant(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Subscriber:
    """A user's entry in an escalation policy.

    ``deactivate_date`` is only meaningful while the subscriber is active;
    ``reactivate_date`` holds the scheduled return time. A date is cleared
    once its transition has fired.
    """

    user_id: uuid.UUID
    active: bool = True
    deactivate_date: datetime | None = None
    reactivate_date: datetime | None = None

    def with_window(
        self,
        deactivate_at: datetime | None,
        reactivate_at: datetime | None,
    ) -> "Subscriber":
        return replace(
            self, deactivate_date=deactivate_at, reactivate_date=reactivate_at
        )

    def deactivated(self) -> "Subscriber":
        return replace(self, active=False, deactivate_date=None)

    def reactivated(self) -> "Subscriber":
        return replace(self, active=True, reactivate_date=None)

    @property
    def has_pending_deactivation(self) -> bool:
        # Inactive subscribers can carry a new window too
        return self.deactivate_date is not None

    @property
    def has_pending_reactivation(self) -> bool:
        return (
            not self.active
            and self.reactivate_date is not None
            and self.deactivate_date is None
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "active": self.active,
            "deactivate_date": _format_instant(self.deactivate_date),
            "reactivate_date": _format_instant(self.reactivate_date),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subscriber":
        return cls(
            user_id=uuid.UUID(str(data["user_id"])),
            active=data.get("active", True),
            deactivate_date=_parse_instant(data.get("deactivate_date")),
            reactivate_date=_parse_instant(data.get("reactivate_date")),
        )


@dataclass(frozen=True)
class EscalationPolicy:
    """Ordered subscribers plus rotation and paging intervals.

    Position in ``subscribers`` decides page order: the first active
    subscriber is paged immediately, each following active subscriber
    ``paging_interval_minutes`` later.
    """

    rotation_interval_days: int = 7
    paging_interval_minutes: int = 10
    subscribers: tuple[Subscriber, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.rotation_interval_days < 0:
            raise ValueError("rotation_interval_days must be >= 0")
        if self.paging_interval_minutes < 0:
            raise ValueError("paging_interval_minutes must be >= 0")
        user_ids = [s.user_id for s in self.subscribers]
        if len(user_ids) != len(set(user_ids)):
            raise ValueError("A user can only subscribe to a policy once")

    def rotated(self) -> "EscalationPolicy":
        """Move the first subscriber to the end.

        Zero or one subscriber rotates to itself.
        """
        if len(self.subscribers) < 2:
            return self
        first, *rest = self.subscribers
        return replace(self, subscribers=(*rest, first))

    def find_subscriber(self, user_id: uuid.UUID) -> Subscriber | None:
        for subscriber in self.subscribers:
            if subscriber.user_id == user_id:
                return subscriber
        return None

    def replace_subscriber(self, updated: Subscriber) -> "EscalationPolicy":
        """Swap in ``updated`` at the position of the matching user.

        Raises:
            KeyError: If the user is not subscribed.
        """
        if self.find_subscriber(updated.user_id) is None:
            raise KeyError(str(updated.user_id))
        return replace(
            self,
            subscribers=tuple(
                updated if s.user_id == updated.user_id else s
                for s in self.subscribers
            ),
        )

