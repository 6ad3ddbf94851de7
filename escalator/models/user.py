"""User and device models.

A user's devices are paged in ``position`` order. ``delays`` holds optional
per-gap overrides in minutes: ``delays[i]`` is the wait between device ``i``
and device ``i + 1``.
"""

import enum
import uuid

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from escalator.models.base import Base, TimestampMixin


class DeviceType(str, enum.Enum):
    """Delivery channel for a device."""

    EMAIL = "email"
    SMS = "sms"
    PHONE = "phone"


class User(Base, TimestampMixin):
    """A person who can be paged."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    delays: Mapped[list[int]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    devices: Mapped[list["Device"]] = relationship(
        "Device",
        back_populates="user",
        order_by="Device.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(name={self.name!r}, devices={len(self.devices)})>"


class Device(Base, TimestampMixin):
    """An address a user can be paged at."""

    __tablename__ = "devices"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Stored as a plain string: unknown types are rejected at send time
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    contact_information: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    user = relationship("User", back_populates="devices")

    def __repr__(self) -> str:
        return f"<Device(name={self.name!r}, type={self.type})>"
