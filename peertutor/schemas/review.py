"""Pydantic schemas for reviews."""
from datetime import datetime

from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class ReviewResponse(BaseModel):
    id: int
    session_id: int
    tutor_id: int
    learner_id: int
    rating: int
    comment: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True
