"""Session routes: book, list mine, view, edit details, accept, decline, complete, review."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from peertutor.database import get_db
from peertutor.deps import get_current_account
from peertutor.models import Account, SessionStatus
from peertutor.schemas.review import ReviewCreate, ReviewResponse
from peertutor.schemas.session import SessionCreate, SessionResponse, SessionUpdate
from peertutor.services.ratings import submit_review
from peertutor.services.state_machine import (
    SessionEvent,
    book_session,
    get_session,
    list_sessions,
    transition_session,
    update_session_details,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """Book a pending session with a tutor. The caller is the learner."""
    return await book_session(
        db,
        learner_id=current_account.id,
        tutor_id=body.tutor_id,
        subject=body.subject,
        session_type=body.session_type,
        scheduled_at=body.scheduled_at,
        duration_minutes=body.duration_minutes,
        notes=body.notes,
    )


@router.get("", response_model=list[SessionResponse])
async def list_my_sessions(
    status_filter: SessionStatus | None = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """Sessions where the caller is tutor or learner, optionally filtered by status."""
    sessions = list_sessions(db, current_account.id, status_filter)
    return await sessions.all()


@router.get("/{session_id}", response_model=SessionResponse)
async def read_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    return await get_session(db, session_id, current_account.id)


@router.patch("/{session_id}", response_model=SessionResponse)
async def edit_session(
    session_id: int,
    body: SessionUpdate,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """Set meeting link / notes on an open session."""
    return await update_session_details(
        db, session_id, current_account.id, meeting_link=body.meeting_link, notes=body.notes
    )


@router.post("/{session_id}/accept", response_model=SessionResponse)
async def accept_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """pending -> confirmed (tutor only)."""
    return await transition_session(db, session_id, current_account.id, SessionEvent.ACCEPT)


@router.post("/{session_id}/decline", response_model=SessionResponse)
async def decline_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """pending -> cancelled (tutor only)."""
    return await transition_session(db, session_id, current_account.id, SessionEvent.DECLINE)


@router.post("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """confirmed -> completed (either participant)."""
    return await transition_session(db, session_id, current_account.id, SessionEvent.COMPLETE)


@router.post("/{session_id}/review", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def review_session(
    session_id: int,
    body: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """Rate a completed session (learner only, once)."""
    return await submit_review(db, session_id, current_account.id, body.rating, body.comment)
