"""
Simulated payment settlement.

Settling marks the booking paid and, when the work is already done, completes
the booking in the same UPDATE so callers never observe a paid `work_done`.
The paid amount is recorded in the log but is not checked against the
booking price.
"""

import asyncio
import logging
import time
import uuid
from typing import Tuple

from sqlalchemy import update, case
from sqlalchemy.ext.asyncio import AsyncSession

from .broadcast import BroadcastChannel
from .config import PAYMENT_DELAY_SECONDS
from .errors import ConflictError, InvalidInputError
from .events import BOOKING_UPDATED
from .lifecycle import get_booking_or_404, is_party, other_party, booking_payload
from .models import Booking, PAYMENT_METHODS, utcnow
from .notifications import NotificationDispatcher
from .security import CurrentUser

logger = logging.getLogger(__name__)


def generate_transaction_id() -> str:
    return f"TXN-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8].upper()}"


class PaymentSettlement:
    def __init__(self, db: AsyncSession, broadcast: BroadcastChannel, delay_seconds: float = PAYMENT_DELAY_SECONDS):
        self.db = db
        self.broadcast = broadcast
        self.delay_seconds = delay_seconds
        self.notifications = NotificationDispatcher(db)

    async def process(
        self,
        booking_id: str,
        payer: CurrentUser,
        payment_method: str,
        amount: float,
    ) -> Tuple[Booking, str]:
        if payment_method not in PAYMENT_METHODS:
            raise InvalidInputError("Unsupported payment method")

        booking = await get_booking_or_404(self.db, booking_id)

        if booking.payment_status == "paid":
            raise ConflictError("Booking is already paid")

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        transaction_id = generate_transaction_id()

        res = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.payment_status != "paid")
            .values(
                payment_status="paid",
                payment_method=payment_method,
                transaction_id=transaction_id,
                status=case((Booking.status == "work_done", "completed"), else_=Booking.status),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            # Lost the race against a concurrent settlement
            await self.db.rollback()
            raise ConflictError("Booking is already paid")

        await self.db.commit()
        await self.db.refresh(booking)

        logger.info(
            "booking %s settled: txn=%s method=%s amount=%s status=%s",
            booking.id, transaction_id, payment_method, amount, booking.status,
        )

        recipient = other_party(booking, payer.id) if is_party(booking, payer.id) else booking.worker_id
        await self.notifications.notify(
            recipient_id=recipient,
            sender_id=payer.id,
            type="payment",
            message=f"Payment received for {booking.service} via {payment_method}",
            related_id=booking.id,
        )

        try:
            await self.broadcast.publish(BOOKING_UPDATED, booking_payload(booking))
        except Exception:
            logger.exception("broadcast of %s failed for booking %s", BOOKING_UPDATED, booking.id)

        return booking, transaction_id
