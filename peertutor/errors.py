"""Error taxonomy shared by the store, lifecycle, rating and policy layers."""
from fastapi import status


class PeerTutorError(Exception):
    """Base exception for all domain errors."""

    code = "ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConstraintViolation(PeerTutorError):
    """A structural or data invariant would be broken. Not retried."""

    code = "CONSTRAINT_VIOLATION"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(PeerTutorError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})


class Forbidden(PeerTutorError):
    """The acting identity may not perform this operation on this record."""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransition(PeerTutorError):
    """Session state machine has no edge for this event from the current status."""

    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, event: str):
        self.current = current
        self.event = event
        super().__init__(
            f"Cannot {event} a session that is {current}",
            {"current": current, "event": event},
        )


class DuplicateReview(ConstraintViolation):
    """A review already exists for this (session, learner) pair."""

    code = "DUPLICATE_REVIEW"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, session_id: int, learner_id: int):
        self.session_id = session_id
        self.learner_id = learner_id
        super().__init__(
            "You have already reviewed this session.",
            {"session_id": session_id, "learner_id": learner_id},
        )
