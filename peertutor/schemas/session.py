"""Pydantic schemas for sessions."""
from datetime import datetime

from pydantic import BaseModel, Field

from peertutor.models import SessionStatus, SessionType
from peertutor.schemas.account import ParticipantResponse


class SessionCreate(BaseModel):
    """Booking request. The learner is always the caller."""
    tutor_id: int
    subject: str = Field(..., min_length=1, max_length=255)
    session_type: SessionType = SessionType.ONE_ON_ONE
    scheduled_at: datetime
    duration_minutes: int = Field(default=60, gt=0)
    notes: str = ""


class SessionUpdate(BaseModel):
    """Opaque details either participant may set while the session is open."""
    meeting_link: str | None = None
    notes: str | None = None


class SessionResponse(BaseModel):
    id: int
    tutor_id: int
    learner_id: int
    subject: str
    session_type: SessionType
    scheduled_at: datetime
    duration_minutes: int
    status: SessionStatus
    meeting_link: str
    notes: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tutor: ParticipantResponse
    learner: ParticipantResponse

    class Config:
        from_attributes = True
