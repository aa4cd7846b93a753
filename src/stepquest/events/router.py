"""Event webhooks: invite creation and user-document updates.

A ``failed`` run answers 503 so the event source redelivers it; the
period markers make redelivery safe.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from stepquest.dependencies import get_pipeline
from stepquest.events.schemas import EventResponse, InviteCreatedEvent, UserUpdatedEvent
from stepquest.pipeline.context import PipelineContext, RunResult, RunStatus
from stepquest.pipeline.goals import notify_daily_goal_completed
from stepquest.pipeline.invites import send_invite_notification

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/events", tags=["Events"])


def _respond(result: RunResult) -> EventResponse:
    if result.status is RunStatus.FAILED:
        raise HTTPException(status_code=503, detail=f"{result.driver} failed: {result.error}")
    return EventResponse(
        status=result.status.value,
        period_key=result.period_key,
        notified=result.notified,
        pruned=result.pruned,
    )


@router.post("/invites", response_model=EventResponse)
async def invite_created(
    event: InviteCreatedEvent,
    ctx: PipelineContext = Depends(get_pipeline),  # noqa: B008
) -> EventResponse:
    result = await send_invite_notification(ctx, event.invite_id, event.from_user_id, event.to_user_id)
    return _respond(result)


@router.post("/users/{user_id}/updated", response_model=EventResponse)
async def user_updated(
    user_id: str,
    event: UserUpdatedEvent,
    ctx: PipelineContext = Depends(get_pipeline),  # noqa: B008
) -> EventResponse:
    try:
        result = await notify_daily_goal_completed(ctx, user_id, event.before, event.after)
    except ValidationError as exc:
        logger.warning("user_event_invalid", user_id=user_id, errors=exc.error_count())
        raise HTTPException(status_code=422, detail="Malformed user snapshot") from exc
    return _respond(result)
