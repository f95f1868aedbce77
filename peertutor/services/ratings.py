"""
Reviews and the tutor rating aggregate.

A review insert and the recomputation of its tutor's rating/total_reviews happen
in the caller's transaction, in this order:

1. claim the tutor's aggregate row (an UPDATE, so the database serializes
   concurrent submissions for the same tutor until commit),
2. insert the review (UNIQUE(session_id, learner_id) rejects duplicates),
3. recompute the aggregate from the full review set.

If any step fails the transaction rolls back and nothing is persisted.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from peertutor.errors import ConstraintViolation, DuplicateReview, Forbidden
from peertutor.models import Account, Review, Session, SessionStatus, TutorProfile
from peertutor.models.review import REVIEW_UNIQUE_CONSTRAINT
from peertutor.services import store
from peertutor.services.policy import Action, authorize

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
RATING_DECIMALS = 2


def mean_rating(ratings: list[int]) -> float:
    """Arithmetic mean rounded for display; 0 when there are no reviews."""
    if not ratings:
        return 0.0
    return round(sum(ratings) / len(ratings), RATING_DECIMALS)


async def claim_tutor_aggregate(db: AsyncSession, tutor_id: int) -> bool:
    """
    Lock the tutor's profile row for the rest of the transaction with a no-op UPDATE.
    Returns False if the tutor has no profile row.
    """
    result = await db.execute(
        update(TutorProfile)
        .where(TutorProfile.account_id == tutor_id)
        .values(total_reviews=TutorProfile.total_reviews)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def recompute_tutor_rating(db: AsyncSession, tutor_id: int) -> TutorProfile | None:
    """Rebuild rating and total_reviews from every review of this tutor (no running average)."""
    result = await db.execute(select(Review.rating).where(Review.tutor_id == tutor_id))
    ratings = list(result.scalars().all())
    profile = await store.query(db, TutorProfile, TutorProfile.account_id == tutor_id).first()
    if profile is None:
        return None
    profile = await store.update(
        db,
        TutorProfile,
        profile.id,
        {"rating": mean_rating(ratings), "total_reviews": len(ratings)},
    )
    logger.info(
        "Tutor %s aggregate: rating=%.2f over %d reviews",
        tutor_id, profile.rating, profile.total_reviews,
    )
    return profile


async def submit_review(
    db: AsyncSession,
    session_id: int,
    learner_id: int,
    rating: int,
    comment: str = "",
) -> Review:
    """
    Store the learner's review of a completed session and refresh the tutor's aggregate.
    A failed insert leaves the ORM session needing a rollback, so only plain ids are used after it.
    """
    learner = await store.get(db, Account, learner_id)
    session = await store.get(db, Session, session_id, fresh=True)
    if session.status != SessionStatus.COMPLETED:
        raise Forbidden(
            "Only completed sessions can be reviewed",
            {"status": session.status.value},
        )
    if session.learner_id != learner.id:
        raise Forbidden("Only the session's learner can review it")
    # bool is an int subclass but not a rating
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ConstraintViolation("Rating must be a whole number", {"rating": rating})
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ConstraintViolation(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}",
            {"rating": rating},
        )

    tutor_id = session.tutor_id
    review = Review(
        session_id=session_id,
        tutor_id=tutor_id,
        learner_id=learner_id,
        rating=rating,
        comment=comment or "",
    )
    authorize(learner, Action.INSERT, review)

    if not await claim_tutor_aggregate(db, tutor_id):
        logger.warning("Tutor %s has no profile; review stored without an aggregate", tutor_id)
    try:
        await store.insert(db, review)
    except ConstraintViolation as exc:
        if store.is_unique_violation(exc, REVIEW_UNIQUE_CONSTRAINT, "reviews"):
            logger.warning("Duplicate review for session %s by learner %s", session_id, learner_id)
            raise DuplicateReview(session_id, learner_id) from exc
        raise
    await recompute_tutor_rating(db, tutor_id)
    logger.info("Review %s stored for session %s (rating %d)", review.id, session_id, rating)
    return review


def list_reviews(
    db: AsyncSession,
    tutor_id: int | None = None,
    session_id: int | None = None,
) -> store.Query[Review]:
    criteria = []
    if tutor_id is not None:
        criteria.append(Review.tutor_id == tutor_id)
    if session_id is not None:
        criteria.append(Review.session_id == session_id)
    return store.query(db, Review, *criteria, order_by=(Review.created_at.desc(), Review.id.desc()))
