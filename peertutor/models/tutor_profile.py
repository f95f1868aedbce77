"""TutorProfile model: public tutor card. rating/total_reviews are derived from reviews."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, ForeignKey, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peertutor.models.base import Base


class TutorProfile(Base):
    __tablename__ = "tutor_profiles"
    __table_args__ = (
        CheckConstraint("hourly_rate >= 0", name="ck_tutor_profiles_hourly_rate"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_tutor_profiles_rating"),
        CheckConstraint("total_reviews >= 0", name="ck_tutor_profiles_total_reviews"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    hourly_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    # Written only by services.ratings.recompute_tutor_rating
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, index=True)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Opaque to the core
    availability: Mapped[Any] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    account = relationship("Account", back_populates="tutor_profile")
