import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError, InvalidInputError
from .models import WorkerProfile, VERIFICATION_STATUSES
from .schemas import WorkerRef

logger = logging.getLogger(__name__)


async def find_worker_profile(db: AsyncSession, ref: WorkerRef) -> WorkerProfile | None:
    # The reference says which id space it belongs to; no second lookup
    if ref.kind == "profile":
        return await db.get(WorkerProfile, ref.id)

    res = await db.execute(select(WorkerProfile).where(WorkerProfile.user_id == ref.id))
    return res.scalar_one_or_none()


async def verify_worker(db: AsyncSession, ref: WorkerRef, status: str) -> WorkerProfile:
    if status not in VERIFICATION_STATUSES:
        raise InvalidInputError("Invalid verification status")

    profile = await find_worker_profile(db, ref)
    if not profile:
        raise NotFoundError("Worker profile not found")

    profile.verification_status = status
    await db.commit()
    logger.info("worker profile %s marked %s", profile.id, status)
    return profile


async def pending_workers(db: AsyncSession) -> List[WorkerProfile]:
    res = await db.execute(select(WorkerProfile).where(WorkerProfile.verification_status == "pending"))
    return list(res.scalars().all())
