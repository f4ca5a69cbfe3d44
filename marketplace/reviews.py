import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ForbiddenError, ConflictError, InvalidInputError
from .lifecycle import get_booking_or_404
from .models import Review, WorkerProfile
from .schemas import CreateReviewRequest
from .security import CurrentUser

logger = logging.getLogger(__name__)

RECENT_LIMIT = 6


def worker_profile_for_update(worker_id: str):
    return (
        select(WorkerProfile)
        .where(WorkerProfile.user_id == worker_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


async def recompute_worker_rating(db: AsyncSession, worker_id: str) -> tuple[float, int]:
    """
    Full recomputation over every review of the worker, written onto the
    worker profile in the caller's transaction.

    The profile row is locked first so concurrent reviews of the same worker
    recompute one after another, each seeing the other's committed rating.
    """
    profile = (await db.execute(worker_profile_for_update(worker_id))).scalar_one_or_none()

    res = await db.execute(select(Review.rating).where(Review.worker_id == worker_id))
    ratings = list(res.scalars().all())
    count = len(ratings)
    average = sum(ratings) / count if count else 0.0

    if profile is not None:
        profile.average_rating = average
        profile.reviews_count = count
    else:
        logger.warning("no worker profile for %s; rating %.2f over %d reviews not stored", worker_id, average, count)

    return average, count


async def submit_review(db: AsyncSession, customer: CurrentUser, data: CreateReviewRequest) -> Review:
    booking = await get_booking_or_404(db, data.booking_id)

    if booking.customer_id != customer.id:
        raise ForbiddenError("Not authorized to review this booking")

    if booking.status != "completed":
        raise ConflictError("Can only review completed bookings")

    existing = await db.execute(select(Review.id).where(Review.booking_id == booking.id))
    if existing.scalar_one_or_none():
        raise ConflictError("Review already submitted")

    if not booking.worker_id:
        raise InvalidInputError("Booking has no assigned worker to review")

    review = Review(
        booking_id=booking.id,
        customer_id=customer.id,
        worker_id=booking.worker_id,
        rating=data.rating,
        comment=data.comment,
    )
    db.add(review)

    try:
        await db.flush()
        average, count = await recompute_worker_rating(db, booking.worker_id)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Review already submitted")

    logger.info("review %s for worker %s: avg=%.2f over %d", review.id, review.worker_id, average, count)
    return review


async def reviews_for_worker(db: AsyncSession, worker_id: str) -> List[Review]:
    res = await db.execute(
        select(Review).where(Review.worker_id == worker_id).order_by(Review.created_at.desc())
    )
    return list(res.scalars().all())


async def recent_reviews(db: AsyncSession, limit: int = RECENT_LIMIT) -> List[Review]:
    res = await db.execute(select(Review).order_by(Review.created_at.desc()).limit(limit))
    return list(res.scalars().all())
