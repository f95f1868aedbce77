"""Account model: one identity with a fixed role (tutor or learner)."""
import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peertutor.models.base import Base


class AccountRole(str, enum.Enum):
    TUTOR = "tutor"
    LEARNER = "learner"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values (e.g. '1-on-1') rather than member names."""
    return [member.value for member in enum_cls]


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # No update path changes this after creation
    role: Mapped[AccountRole] = mapped_column(
        Enum(
            AccountRole,
            name="account_role",
            native_enum=False,
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tutor_profile = relationship("TutorProfile", back_populates="account", uselist=False)
