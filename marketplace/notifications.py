import logging
from typing import List, Optional

from sqlalchemy import select, update, false
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_sessionmaker
from .errors import NotFoundError, ForbiddenError, InvalidInputError
from .models import Notification, NOTIFICATION_TYPES

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50


class NotificationDispatcher:
    """
    Persists per-recipient notifications as a side effect of other transitions.

    `notify` writes through its own session on the caller's engine and
    commits before returning, so anything broadcast afterwards can rely on the
    notification already being visible. Failures are logged and swallowed;
    the caller's session and its already-committed objects are left untouched.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        *,
        recipient_id: Optional[str],
        type: str,
        message: str,
        sender_id: Optional[str] = None,
        related_id: Optional[str] = None,
    ) -> Optional[Notification]:
        if not recipient_id:
            return None

        if type not in NOTIFICATION_TYPES:
            raise InvalidInputError(f"Unknown notification type: {type}")

        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            message=message,
            related_id=related_id,
            is_read=False,
        )

        async with get_sessionmaker(self.db.bind)() as session:
            try:
                session.add(notification)
                await session.commit()
            except SQLAlchemyError:
                logger.exception("failed to persist %s notification for %s", type, recipient_id)
                await session.rollback()
                return None

        return notification


async def list_notifications(db: AsyncSession, recipient_id: str, limit: int = INBOX_LIMIT) -> List[Notification]:
    res = await db.execute(
        select(Notification)
        .where(Notification.recipient_id == recipient_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(res.scalars().all())


async def mark_read(db: AsyncSession, notification_id: str, user_id: str) -> Notification:
    notification = await db.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")

    if notification.recipient_id != user_id:
        raise ForbiddenError("Not authorized")

    notification.is_read = True
    await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, user_id: str) -> int:
    res = await db.execute(
        update(Notification)
        .where(Notification.recipient_id == user_id, Notification.is_read == false())
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount or 0
