"""Event payloads delivered by the app backend."""

from typing import Any

from pydantic import BaseModel, Field


class InviteCreatedEvent(BaseModel):
    invite_id: str = Field(min_length=1)
    from_user_id: str = Field(min_length=1)
    to_user_id: str = Field(min_length=1)


class UserUpdatedEvent(BaseModel):
    """Before/after snapshots of one user document."""

    before: dict[str, Any] | None = None
    after: dict[str, Any]


class EventResponse(BaseModel):
    status: str
    period_key: str | None = None
    notified: int = 0
    pruned: int = 0
