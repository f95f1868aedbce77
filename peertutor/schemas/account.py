"""Pydantic schemas for accounts: register, login, account response, token."""
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from peertutor.models import AccountRole


class AccountCreate(BaseModel):
    """Request body for POST /auth/register."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: AccountRole


class AccountResponse(BaseModel):
    """Account in API responses (no password)."""
    id: int
    email: str
    full_name: str
    role: AccountRole
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ParticipantResponse(BaseModel):
    """Account embedded in a session: identity only."""
    id: int
    email: str
    full_name: str
    role: AccountRole

    class Config:
        from_attributes = True


class AccountUpdate(BaseModel):
    """Request body for PATCH /auth/me. Role is fixed at registration."""
    full_name: str | None = Field(default=None, min_length=1, max_length=255)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
