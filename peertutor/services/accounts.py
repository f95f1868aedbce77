"""Accounts and tutor profiles: registration, login lookup, profile edits and the tutor listing."""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from peertutor.auth.passwords import hash_password, verify_password
from peertutor.errors import ConstraintViolation, Forbidden, NotFound
from peertutor.models import Account, AccountRole, TutorProfile
from peertutor.services import store
from peertutor.services.policy import Action, authorize, authorize_profile_patch, is_tutor

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_skills(skills: list[str]) -> list[str]:
    """Trimmed, non-empty, de-duplicated (case-insensitive), first spelling wins."""
    seen = set()
    result = []
    for skill in skills:
        skill = skill.strip()
        if skill and skill.lower() not in seen:
            seen.add(skill.lower())
            result.append(skill)
    return result


async def register_account(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    role: AccountRole | str,
) -> Account:
    """Create an account; tutors get an empty profile in the same transaction."""
    try:
        role = AccountRole(role)
    except ValueError:
        raise ConstraintViolation(
            f"Unknown role '{role}'",
            {"allowed": [r.value for r in AccountRole]},
        )
    email = _normalize_email(email)
    existing = await store.query(db, Account, Account.email == email).first()
    if existing is not None:
        raise ConstraintViolation("Email already registered")

    account = await store.insert(
        db,
        Account(
            email=email,
            hashed_password=hash_password(password),
            full_name=(full_name or "").strip(),
            role=role,
        ),
    )
    if role == AccountRole.TUTOR:
        await store.insert(db, TutorProfile(account_id=account.id))
    logger.info("Registered %s account %s", role.value, account.id)
    return account


async def authenticate(db: AsyncSession, email: str, password: str) -> Account | None:
    account = await store.query(db, Account, Account.email == _normalize_email(email)).first()
    if account is None or not verify_password(password, account.hashed_password):
        return None
    return account


async def update_account(
    db: AsyncSession,
    account_id: int,
    actor_id: int,
    full_name: str | None = None,
) -> Account:
    """Accounts edit only their own display name; role and email have no update path."""
    actor = await store.get(db, Account, actor_id)
    account = await store.get(db, Account, account_id)
    authorize(actor, Action.UPDATE, account)
    if full_name is None:
        return account
    return await store.update(db, Account, account_id, {"full_name": full_name.strip()})


def list_tutors(db: AsyncSession) -> store.Query[TutorProfile]:
    """All tutor profiles with their account, best rated first."""
    return store.query(
        db,
        TutorProfile,
        order_by=(TutorProfile.rating.desc(), TutorProfile.total_reviews.desc(), TutorProfile.id),
        options=(selectinload(TutorProfile.account),),
    )


async def get_tutor_profile(db: AsyncSession, tutor_id: int) -> TutorProfile:
    """Profile of the tutor account tutor_id, with the account embedded."""
    profile = await store.query(
        db,
        TutorProfile,
        TutorProfile.account_id == tutor_id,
        options=(selectinload(TutorProfile.account),),
    ).first()
    if profile is None:
        raise NotFound("TutorProfile", tutor_id)
    return profile


async def update_tutor_profile(
    db: AsyncSession,
    tutor_id: int,
    actor_id: int,
    bio: str | None = None,
    skills: list[str] | None = None,
    hourly_rate: float | None = None,
    availability: Any = None,
) -> TutorProfile:
    """Owner-only edit of the descriptive fields. rating/total_reviews are never part of the patch."""
    actor = await store.get(db, Account, actor_id)
    if not is_tutor(actor):
        logger.warning("Denied profile edit for non-tutor account %s", actor.id)
        raise Forbidden("Only tutors have a profile to edit")
    profile = await get_tutor_profile(db, tutor_id)
    patch: dict[str, Any] = {}
    if bio is not None:
        patch["bio"] = bio
    if skills is not None:
        patch["skills"] = normalize_skills(skills)
    if hourly_rate is not None:
        if hourly_rate < 0:
            raise ConstraintViolation("Hourly rate cannot be negative", {"hourly_rate": hourly_rate})
        patch["hourly_rate"] = hourly_rate
    if availability is not None:
        patch["availability"] = availability
    authorize_profile_patch(actor, profile, patch)
    if patch:
        await store.update(db, TutorProfile, profile.id, patch)
        logger.info("Tutor %s updated profile fields %s", tutor_id, sorted(patch))
    profile = await store.get(
        db, TutorProfile, profile.id, options=(selectinload(TutorProfile.account),), fresh=True
    )
    return profile
