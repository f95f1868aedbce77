"""Tutor routes: listing by rating, profile view/edit, reviews received."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from peertutor.database import get_db
from peertutor.deps import get_current_account
from peertutor.errors import ConstraintViolation
from peertutor.models import Account
from peertutor.schemas.review import ReviewResponse
from peertutor.schemas.tutor import TutorProfileResponse, TutorProfileUpdate
from peertutor.services.accounts import get_tutor_profile, list_tutors, update_tutor_profile
from peertutor.services.policy import reject_derived_fields
from peertutor.services.ratings import list_reviews

router = APIRouter(prefix="/tutors", tags=["tutors"])


@router.get("", response_model=list[TutorProfileResponse])
async def list_all_tutors(
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """All tutors, highest rating first."""
    tutors = list_tutors(db)
    return await tutors.all()


@router.patch("/me", response_model=TutorProfileResponse)
async def update_my_profile(
    body: TutorProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """Edit bio, skills, hourly rate, availability. rating/total_reviews are refused with 403."""
    extra = set(body.model_extra or {})
    reject_derived_fields(extra)
    if extra:
        raise ConstraintViolation(f"Unknown profile fields: {', '.join(sorted(extra))}")
    return await update_tutor_profile(
        db,
        current_account.id,
        current_account.id,
        bio=body.bio,
        skills=body.skills,
        hourly_rate=body.hourly_rate,
        availability=body.availability,
    )


@router.get("/{tutor_id}", response_model=TutorProfileResponse)
async def get_tutor(
    tutor_id: int,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    return await get_tutor_profile(db, tutor_id)


@router.get("/{tutor_id}/reviews", response_model=list[ReviewResponse])
async def tutor_reviews(
    tutor_id: int,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """Reviews the tutor has received, newest first."""
    return await list_reviews(db, tutor_id=tutor_id).all()
