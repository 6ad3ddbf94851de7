"""Group model.

A group owns exactly one escalation policy, stored inline: the interval
columns plus a JSONB list of subscribers. ``version_id`` is an optimistic
concurrency token so a rotation and an availability transition landing at
the same instant cannot silently overwrite each other.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from escalator.models.base import Base, TimestampMixin
from escalator.models.escalation_policy import EscalationPolicy, Subscriber


class Group(Base, TimestampMixin):
    """A pageable team with its escalation policy."""

    __tablename__ = "groups"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        index=True,
    )

    # User ids belonging to the group (join point only)
    members: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    policy_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    rotation_interval_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=7,
    )

    paging_interval_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10,
    )

    # Ordered list of Subscriber.to_dict() entries
    subscribers: Mapped[list[dict]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    last_rotated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    version_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def policy(self) -> EscalationPolicy | None:
        if not self.policy_enabled:
            return None
        return EscalationPolicy(
            rotation_interval_days=self.rotation_interval_days,
            paging_interval_minutes=self.paging_interval_minutes,
            subscribers=tuple(
                Subscriber.from_dict(s) for s in (self.subscribers or [])
            ),
        )

    @policy.setter
    def policy(self, policy: EscalationPolicy | None) -> None:
        if policy is None:
            self.policy_enabled = False
            self.subscribers = []
            return
        self.policy_enabled = True
        self.rotation_interval_days = policy.rotation_interval_days
        self.paging_interval_minutes = policy.paging_interval_minutes
        # Always a new list object so the change is flushed
        self.subscribers = [s.to_dict() for s in policy.subscribers]

    def __repr__(self) -> str:
        return (
            f"<Group(name={self.name!r}, "
            f"subscribers={len(self.subscribers or [])}, "
            f"last_rotated={self.last_rotated})>"
        )
