"""Session state machine: booking, allowed transitions, and which participant may trigger each one."""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from peertutor.errors import ConstraintViolation, Forbidden, InvalidTransition
from peertutor.models import Account, AccountRole, Session, SessionStatus, SessionType
from peertutor.services import store
from peertutor.services.policy import Action, authorize, is_tutor

logger = logging.getLogger(__name__)


class SessionEvent(str, enum.Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    COMPLETE = "complete"


class Participant(str, enum.Enum):
    TUTOR = "tutor"
    LEARNER = "learner"


@dataclass(frozen=True)
class Transition:
    to_state: SessionStatus
    allowed: frozenset[Participant]


# (from_state, event) -> transition. Anything not listed is rejected.
TRANSITIONS: dict[tuple[SessionStatus, SessionEvent], Transition] = {
    (SessionStatus.PENDING, SessionEvent.ACCEPT): Transition(
        SessionStatus.CONFIRMED, frozenset({Participant.TUTOR})
    ),
    (SessionStatus.PENDING, SessionEvent.DECLINE): Transition(
        SessionStatus.CANCELLED, frozenset({Participant.TUTOR})
    ),
    (SessionStatus.CONFIRMED, SessionEvent.COMPLETE): Transition(
        SessionStatus.COMPLETED, frozenset({Participant.TUTOR, Participant.LEARNER})
    ),
}

TERMINAL_STATES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED})

WITH_PARTICIPANTS = (selectinload(Session.tutor), selectinload(Session.learner))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def participant_of(session: Session, actor: Account) -> Participant:
    """Which side of the session the actor is on; Forbidden for anyone else."""
    if actor.id == session.tutor_id:
        return Participant.TUTOR
    if actor.id == session.learner_id:
        return Participant.LEARNER
    raise Forbidden("Not a participant in this session")


def _require_learner(actor: Account) -> None:
    if actor.role == AccountRole.LEARNER:
        return
    if actor.role == AccountRole.TUTOR:
        raise Forbidden("Only learners can book sessions")
    raise ValueError(f"Unknown account role: {actor.role!r}")


async def load_session(db: AsyncSession, session_id: int) -> Session:
    """Session with both participant accounts loaded, bypassing stale identity-map state."""
    return await store.get(db, Session, session_id, options=WITH_PARTICIPANTS, fresh=True)


async def book_session(
    db: AsyncSession,
    learner_id: int,
    tutor_id: int,
    subject: str,
    session_type: SessionType | str,
    scheduled_at: datetime,
    duration_minutes: int = 60,
    notes: str = "",
) -> Session:
    """Create a pending session. The acting learner books for themselves with an existing tutor."""
    learner = await store.get(db, Account, learner_id)
    _require_learner(learner)
    tutor = await store.get(db, Account, tutor_id)
    if tutor.id == learner.id:
        raise ConstraintViolation("Tutor and learner must be different accounts")
    if not is_tutor(tutor):
        raise ConstraintViolation(f"Account {tutor_id} is not a tutor")
    subject = (subject or "").strip()
    if not subject:
        raise ConstraintViolation("Subject is required")
    if duration_minutes <= 0:
        raise ConstraintViolation("Duration must be a positive number of minutes")
    try:
        session_type = SessionType(session_type)
    except ValueError:
        raise ConstraintViolation(
            f"Unknown session type '{session_type}'",
            {"allowed": [t.value for t in SessionType]},
        )
    scheduled_at = _as_utc(scheduled_at)
    if scheduled_at < datetime.now(timezone.utc):
        raise ConstraintViolation("Session cannot be scheduled in the past")

    session = Session(
        tutor_id=tutor.id,
        learner_id=learner.id,
        subject=subject,
        session_type=session_type,
        scheduled_at=scheduled_at,
        duration_minutes=duration_minutes,
        notes=notes or "",
        status=SessionStatus.PENDING,
    )
    authorize(learner, Action.INSERT, session)
    await store.insert(db, session)
    logger.info("Session %s booked by learner %s with tutor %s", session.id, learner.id, tutor.id)
    return await load_session(db, session.id)


async def transition_session(
    db: AsyncSession,
    session_id: int,
    actor_id: int,
    event: SessionEvent | str,
) -> Session:
    """
    Apply event to the session if the table allows it from the current status and
    the actor is the participant the transition requires.
    The write is conditional on the status we validated against, so a concurrent
    transition that lands first makes this one fail with InvalidTransition.
    """
    actor = await store.get(db, Account, actor_id)
    session = await store.get(db, Session, session_id, fresh=True)
    authorize(actor, Action.UPDATE, session)

    current = session.status
    try:
        event = SessionEvent(event)
    except ValueError:
        raise InvalidTransition(current.value, str(event))
    step = TRANSITIONS.get((current, event))
    if step is None:
        logger.warning("Rejected %s on session %s (status %s)", event.value, session_id, current.value)
        raise InvalidTransition(current.value, event.value)
    if participant_of(session, actor) not in step.allowed:
        raise Forbidden(f"Only the session's tutor may {event.value} it")

    result = await db.execute(
        update(Session)
        .where(Session.id == session.id, Session.status == current)
        .values(status=step.to_state)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        latest = await store.get(db, Session, session_id, fresh=True)
        raise InvalidTransition(latest.status.value, event.value)
    logger.info(
        "Session %s: %s -> %s by account %s",
        session_id, current.value, step.to_state.value, actor.id,
    )
    return await load_session(db, session_id)


async def get_session(db: AsyncSession, session_id: int, actor_id: int) -> Session:
    actor = await store.get(db, Account, actor_id)
    session = await load_session(db, session_id)
    authorize(actor, Action.READ, session)
    return session


def list_sessions(
    db: AsyncSession,
    actor_id: int,
    status: SessionStatus | str | None = None,
) -> store.Query[Session]:
    """Sessions where actor is tutor or learner, newest scheduled first, participants embedded."""
    criteria = [or_(Session.tutor_id == actor_id, Session.learner_id == actor_id)]
    if status is not None:
        try:
            criteria.append(Session.status == SessionStatus(status))
        except ValueError:
            raise ConstraintViolation(
                f"Unknown session status '{status}'",
                {"allowed": [s.value for s in SessionStatus]},
            )
    return store.query(
        db,
        Session,
        *criteria,
        order_by=(Session.scheduled_at.desc(), Session.id.desc()),
        options=WITH_PARTICIPANTS,
    )


async def update_session_details(
    db: AsyncSession,
    session_id: int,
    actor_id: int,
    meeting_link: str | None = None,
    notes: str | None = None,
) -> Session:
    """Either participant may set the opaque meeting link / notes while the session is still open."""
    actor = await store.get(db, Account, actor_id)
    session = await store.get(db, Session, session_id)
    authorize(actor, Action.UPDATE, session)
    if session.status in TERMINAL_STATES:
        raise ConstraintViolation(f"Session is {session.status.value}; details can no longer change")
    patch = {}
    if meeting_link is not None:
        patch["meeting_link"] = meeting_link
    if notes is not None:
        patch["notes"] = notes
    if patch:
        await store.update(db, Session, session_id, patch)
    return await load_session(db, session_id)
