"""Pydantic schemas for tutor profiles."""
from typing import Any

from pydantic import BaseModel, Field

from peertutor.schemas.account import ParticipantResponse


class TutorProfileResponse(BaseModel):
    id: int
    account_id: int
    bio: str
    skills: list[str]
    hourly_rate: float
    rating: float
    total_reviews: int
    availability: Any = None
    account: ParticipantResponse

    class Config:
        from_attributes = True


class TutorProfileUpdate(BaseModel):
    """PATCH /tutors/me. Extra keys are kept so derived fields can be refused explicitly."""
    bio: str | None = None
    skills: list[str] | None = None
    hourly_rate: float | None = Field(default=None, ge=0)
    availability: Any = None

    class Config:
        extra = "allow"
