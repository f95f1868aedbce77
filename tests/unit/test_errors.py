"""Unit tests for the error taxonomy."""
from fastapi import status

from peertutor.errors import (
    ConstraintViolation,
    DuplicateReview,
    Forbidden,
    InvalidTransition,
    NotFound,
    PeerTutorError,
)


def test_all_errors_share_a_base():
    for cls in (ConstraintViolation, NotFound, Forbidden, InvalidTransition, DuplicateReview):
        assert issubclass(cls, PeerTutorError)


def test_duplicate_review_is_a_constraint_violation_with_its_own_code():
    exc = DuplicateReview(session_id=7, learner_id=3)
    assert isinstance(exc, ConstraintViolation)
    assert exc.code == "DUPLICATE_REVIEW"
    assert exc.status_code == status.HTTP_409_CONFLICT
    assert "already reviewed" in exc.message
    assert exc.details == {"session_id": 7, "learner_id": 3}


def test_invalid_transition_reports_current_state_and_event():
    exc = InvalidTransition("pending", "complete")
    assert exc.current == "pending"
    assert exc.event == "complete"
    assert exc.details == {"current": "pending", "event": "complete"}


def test_not_found_message():
    exc = NotFound("Session", 42)
    assert str(exc) == "Session 42 not found"
    assert exc.status_code == status.HTTP_404_NOT_FOUND


def test_forbidden_and_constraint_violation_are_distinct_statuses():
    assert Forbidden("no").status_code == status.HTTP_403_FORBIDDEN
    assert ConstraintViolation("bad").status_code == status.HTTP_400_BAD_REQUEST
