from peertutor.models.base import Base
from peertutor.models.account import Account, AccountRole
from peertutor.models.review import Review
from peertutor.models.session import Session, SessionStatus, SessionType
from peertutor.models.tutor_profile import TutorProfile

__all__ = [
    "Base",
    "Account",
    "AccountRole",
    "TutorProfile",
    "Session",
    "SessionStatus",
    "SessionType",
    "Review",
]
