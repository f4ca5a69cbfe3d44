import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .broadcast import BroadcastChannel
from .errors import ForbiddenError, InvalidInputError
from .events import NEW_MESSAGE
from .lifecycle import get_booking_or_404, is_party, other_party
from .models import Booking, Message
from .notifications import NotificationDispatcher
from .schemas import MessageResponse
from .security import CurrentUser

logger = logging.getLogger(__name__)


class MessagingService:
    def __init__(self, db: AsyncSession, broadcast: BroadcastChannel):
        self.db = db
        self.broadcast = broadcast
        self.notifications = NotificationDispatcher(db)

    async def _thread_booking(self, booking_id: str, user: CurrentUser) -> Booking:
        booking = await get_booking_or_404(self.db, booking_id)
        if not is_party(booking, user.id):
            raise ForbiddenError("Not authorized")
        return booking

    async def post(self, booking_id: str, sender: CurrentUser, text: str) -> Message:
        body = (text or "").strip()
        if not body:
            raise InvalidInputError("Message text is required")

        booking = await self._thread_booking(booking_id, sender)

        message = Message(booking_id=booking.id, sender_id=sender.id, text=body)
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)

        # No assigned worker means no recipient, so nothing is persisted here
        await self.notifications.notify(
            recipient_id=other_party(booking, sender.id),
            sender_id=sender.id,
            type="message",
            message=f"New message from {sender.name or 'User'}",
            related_id=booking.id,
        )

        try:
            await self.broadcast.publish(
                NEW_MESSAGE, MessageResponse.model_validate(message).model_dump(mode="json")
            )
        except Exception:
            logger.exception("broadcast of %s failed for booking %s", NEW_MESSAGE, booking.id)

        return message

    async def thread(self, booking_id: str, requester: CurrentUser) -> List[Message]:
        booking = await self._thread_booking(booking_id, requester)
        # TODO: paginate once threads outgrow a single response
        res = await self.db.execute(
            select(Message)
            .where(Message.booking_id == booking.id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(res.scalars().all())
