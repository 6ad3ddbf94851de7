"""Escalation policy scheduling endpoints."""

import uuid

from fastapi import APIRouter, Depends

from escalator.core.dependencies import get_escalation_engine, http_error
from escalator.core.errors import EscalatorError
from escalator.schemas.availability import (
    DeactivationRequest,
    RotationResponse,
    TransitionResponse,
)
from escalator.services.engine import EscalationEngine

router = APIRouter(prefix="/api/groups", tags=["groups"])


@router.post(
    "/{group_name}/subscribers/{user_id}/availability",
    response_model=TransitionResponse,
)
async def schedule_deactivation(
    group_name: str,
    user_id: uuid.UUID,
    body: DeactivationRequest,
    engine: EscalationEngine = Depends(get_escalation_engine),
) -> TransitionResponse:
    """Take a subscriber off the escalation path for a window.

    A ``deactivate_at`` in the past applies immediately.
    """
    try:
        group = await engine.groups.get(group_name)
        effective_at, group = await engine.availability.schedule_deactivation(
            group, user_id, body.deactivate_at, body.reactivate_at
        )
        if group is None:
            group = await engine.groups.get(group_name)
    except EscalatorError as exc:
        raise http_error(exc) from exc

    return TransitionResponse(
        group_name=group_name,
        effective_at=effective_at,
        subscribers=[s.to_dict() for s in group.policy.subscribers],
    )


@router.post("/{group_name}/rotation", response_model=RotationResponse)
async def schedule_rotation(
    group_name: str,
    engine: EscalationEngine = Depends(get_escalation_engine),
) -> RotationResponse:
    """Arm the group's next rotation, replacing any pending one."""
    try:
        group = await engine.groups.get(group_name)
        next_rotation_at, group = await engine.rotation.schedule_rotation(group)
    except EscalatorError as exc:
        raise http_error(exc) from exc

    return RotationResponse(
        group_name=group_name,
        next_rotation_at=next_rotation_at,
        last_rotated=group.last_rotated,
    )
