"""
Access policy: who may read, insert or update each kind of record.

These rules are authoritative; role checks in a client UI are advisory only.
Every rule is a predicate over (actor, action, record).
"""
import enum
import logging
from collections.abc import Callable
from typing import Any

from peertutor.errors import Forbidden
from peertutor.models import Account, AccountRole, Review, Session, TutorProfile

logger = logging.getLogger(__name__)

# Written only by the rating aggregator
DERIVED_PROFILE_FIELDS = frozenset({"rating", "total_reviews"})


class Action(str, enum.Enum):
    READ = "read"
    INSERT = "insert"
    UPDATE = "update"


def _account_rule(actor: Account, action: Action, record: Account) -> bool:
    if action == Action.READ:
        return True
    if action == Action.UPDATE:
        return record.id == actor.id
    # Accounts are created by registration, not by an acting identity
    return False


def _tutor_profile_rule(actor: Account, action: Action, record: TutorProfile) -> bool:
    if action == Action.READ:
        return True
    return record.account_id == actor.id and is_tutor(actor)


def _session_rule(actor: Account, action: Action, record: Session) -> bool:
    if action == Action.INSERT:
        return record.learner_id == actor.id
    return actor.id in (record.tutor_id, record.learner_id)


def _review_rule(actor: Account, action: Action, record: Review) -> bool:
    if action == Action.READ:
        return True
    if action == Action.INSERT:
        return record.learner_id == actor.id
    # Reviews are immutable
    return False


RULES: dict[type, Callable[[Account, Action, Any], bool]] = {
    Account: _account_rule,
    TutorProfile: _tutor_profile_rule,
    Session: _session_rule,
    Review: _review_rule,
}


def is_tutor(actor: Account) -> bool:
    """Exhaustive over AccountRole so a new role cannot silently fall through."""
    if actor.role == AccountRole.TUTOR:
        return True
    if actor.role == AccountRole.LEARNER:
        return False
    raise ValueError(f"Unknown account role: {actor.role!r}")


def is_allowed(actor: Account, action: Action, record: Any) -> bool:
    rule = RULES.get(type(record))
    if rule is None:
        raise TypeError(f"No access rule for {type(record).__name__}")
    return rule(actor, action, record)


def authorize(actor: Account, action: Action, record: Any) -> None:
    """Raise Forbidden unless actor may perform action on record."""
    if not is_allowed(actor, action, record):
        entity = type(record).__name__
        logger.warning(
            "Denied %s on %s %s for account %s",
            action.value, entity, getattr(record, "id", None), actor.id,
        )
        raise Forbidden(f"Not allowed to {action.value} this {entity}")


def reject_derived_fields(fields) -> None:
    touched = DERIVED_PROFILE_FIELDS.intersection(fields)
    if touched:
        raise Forbidden(
            "rating and total_reviews are derived from reviews and cannot be edited",
            {"fields": sorted(touched)},
        )


def authorize_profile_patch(actor: Account, profile: TutorProfile, patch: dict[str, Any]) -> None:
    """Profile edits go through the owner rule and may never touch derived fields."""
    reject_derived_fields(patch)
    authorize(actor, Action.UPDATE, profile)
