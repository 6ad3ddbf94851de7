"""Subscriber availability and rotation schemas."""

from datetime import datetime

from pydantic import AwareDatetime, BaseModel, Field, model_validator


class DeactivationRequest(BaseModel):
    """Request to take a subscriber off the escalation path for a window.

    A past ``deactivate_at`` takes effect immediately. Omitting
    ``reactivate_at`` leaves the subscriber inactive until a later request.
    """

    deactivate_at: AwareDatetime
    reactivate_at: AwareDatetime | None = Field(
        default=None,
        description="When the subscriber should be paged again.",
    )

    @model_validator(mode="after")
    def validate_window(self) -> "DeactivationRequest":
        """Ensure the window does not end before it starts."""
        if self.reactivate_at is not None and self.reactivate_at <= self.deactivate_at:
            msg = "reactivate_at must be after deactivate_at"
            raise ValueError(msg)
        return self


class TransitionResponse(BaseModel):
    """When a scheduled transition takes effect."""

    group_name: str
    effective_at: datetime | None
    subscribers: list[dict]


class RotationResponse(BaseModel):
    """When the group's next rotation will fire."""

    group_name: str
    next_rotation_at: datetime
    last_rotated: datetime
