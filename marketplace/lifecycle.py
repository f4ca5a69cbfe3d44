"""
Booking lifecycle: transition rules, party authorization and the
persist -> notify -> broadcast sequence for every status change.
"""

import logging
from typing import Dict, List, Optional, Set

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .broadcast import BroadcastChannel
from .errors import NotFoundError, ForbiddenError, InvalidInputError, ConflictError
from .events import BOOKING_CREATED, BOOKING_UPDATED
from .models import Booking, BOOKING_STATUSES, utcnow
from .notifications import NotificationDispatcher
from .schemas import BookingResponse, CreateBookingRequest, TimelineStep
from .security import CurrentUser

logger = logging.getLogger(__name__)

# Statuses a party may request; "pending" is only ever the initial state
ACTOR_TARGETS = ("accepted", "rejected", "work_done", "completed", "cancelled")

TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"accepted", "rejected", "cancelled"},
    "accepted": {"work_done", "cancelled"},
    # work_done -> work_done lets the worker re-issue the final invoice
    "work_done": {"work_done", "completed", "cancelled"},
    "rejected": set(),
    "completed": set(),
    "cancelled": set(),
}

NOTIFICATION_TYPE_BY_STATUS = {
    "completed": "completed",
    "cancelled": "cancelled",
}


def assert_transition(current: str, target: str) -> None:
    allowed = TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ConflictError(f"Cannot change booking status from {current} to {target}")


def is_party(booking: Booking, user_id: str) -> bool:
    if user_id == booking.customer_id:
        return True
    return booking.worker_id is not None and user_id == booking.worker_id


def other_party(booking: Booking, acting_user_id: str) -> Optional[str]:
    """Recipient for side-effect notifications: the party that did not act."""
    if acting_user_id == booking.customer_id:
        return booking.worker_id
    if booking.worker_id is not None and acting_user_id == booking.worker_id:
        return booking.customer_id
    return None


def booking_payload(booking: Booking) -> dict:
    return BookingResponse.model_validate(booking).model_dump(mode="json")


async def get_booking_or_404(db: AsyncSession, booking_id: str) -> Booking:
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def compare_and_set_status(db: AsyncSession, booking_id: str, expected_status: str, values: dict) -> bool:
    """
    Apply `values` only if the booking still has `expected_status`.
    Returns False when another writer moved the booking first.
    """
    res = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == expected_status)
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def status_message(booking: Booking, acting_as_worker: bool) -> str:
    if acting_as_worker:
        return f"Your booking for {booking.service} is now {booking.status}"
    return f"Booking status updated to {booking.status} by customer"


class BookingLifecycleEngine:
    def __init__(self, db: AsyncSession, broadcast: BroadcastChannel):
        self.db = db
        self.broadcast = broadcast
        self.notifications = NotificationDispatcher(db)

    async def _publish(self, event_name: str, booking: Booking):
        try:
            await self.broadcast.publish(event_name, booking_payload(booking))
        except Exception:
            logger.exception("broadcast of %s failed for booking %s", event_name, booking.id)

    async def create_booking(self, customer: CurrentUser, data: CreateBookingRequest) -> Booking:
        booking = Booking(
            customer_id=customer.id,
            worker_id=data.worker_id or None,
            service=data.service,
            service_date=data.service_date,
            address=data.address,
            phone=data.phone,
            notes=data.notes,
            price=data.price,
            payment_method=data.payment_method,
            status="pending",
            payment_status="pending",
        )
        self.db.add(booking)
        await self.db.commit()
        await self.db.refresh(booking)

        logger.info("booking %s created by %s (worker=%s)", booking.id, customer.id, booking.worker_id)

        if booking.worker_id:
            await self.notifications.notify(
                recipient_id=booking.worker_id,
                sender_id=customer.id,
                type="new-booking",
                message=f"New booking request from {customer.name or 'Customer'}",
                related_id=booking.id,
            )

        await self._publish(BOOKING_CREATED, booking)
        return booking

    async def update_status(
        self,
        booking_id: str,
        actor: CurrentUser,
        target: str,
        estimated_arrival: Optional[str] = None,
        price: Optional[float] = None,
    ) -> Booking:
        if target not in ACTOR_TARGETS:
            raise InvalidInputError("Invalid status")

        booking = await get_booking_or_404(self.db, booking_id)

        if not is_party(booking, actor.id):
            raise ForbiddenError("Not authorized")

        # Membership is the only role check: a customer may also accept or
        # mark work done on their own booking.
        acting_as_worker = booking.worker_id is not None and actor.id == booking.worker_id
        observed = booking.status
        assert_transition(observed, target)

        values = {"status": target}
        eta = (estimated_arrival or "").strip()
        if target == "accepted":
            if eta:
                values["estimated_arrival"] = eta
            elif acting_as_worker:
                raise InvalidInputError("Estimated arrival is required when accepting a booking")

        if price is not None:
            if target != "work_done" or not acting_as_worker:
                raise InvalidInputError("Price can only be revised by the worker when marking work as done")
            values["price"] = price

        if not await compare_and_set_status(self.db, booking.id, observed, values):
            await self.db.rollback()
            raise ConflictError("Booking was changed by another request, reload and try again")

        await self.db.commit()
        await self.db.refresh(booking)

        logger.info("booking %s: %s -> %s by %s", booking.id, observed, booking.status, actor.id)

        await self.notifications.notify(
            recipient_id=other_party(booking, actor.id),
            sender_id=actor.id,
            type=NOTIFICATION_TYPE_BY_STATUS.get(booking.status, "booking-update"),
            message=status_message(booking, acting_as_worker),
            related_id=booking.id,
        )

        await self._publish(BOOKING_UPDATED, booking)
        return booking

    async def override_status(self, booking_id: str, target: str, admin: CurrentUser) -> Booking:
        """Admin dispute resolution: any status, no graph, no notification, no broadcast."""
        if target not in BOOKING_STATUSES:
            raise InvalidInputError("Invalid status")

        booking = await get_booking_or_404(self.db, booking_id)
        previous = booking.status
        booking.status = target
        booking.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(booking)

        logger.warning("booking %s: admin %s forced %s -> %s", booking.id, admin.id, previous, target)
        return booking


async def get_booking_for(db: AsyncSession, booking_id: str, user: CurrentUser) -> Booking:
    booking = await get_booking_or_404(db, booking_id)
    if not is_party(booking, user.id) and not user.has_role("admin"):
        raise ForbiddenError("Not authorized")
    return booking


async def list_bookings_for(db: AsyncSession, user_id: str) -> List[Booking]:
    res = await db.execute(
        select(Booking)
        .where(or_(Booking.customer_id == user_id, Booking.worker_id == user_id))
        .order_by(Booking.created_at.desc())
    )
    return list(res.scalars().all())


async def list_all_bookings(db: AsyncSession) -> List[Booking]:
    res = await db.execute(select(Booking).order_by(Booking.created_at.desc()))
    return list(res.scalars().all())


def timeline(booking: Booking) -> List[TimelineStep]:
    # Only creation has its own timestamp. Later steps reuse updated_at, which
    # is exact only for the latest transition; "work finished" has no time.
    status = booking.status
    accepted = status in ("accepted", "work_done", "completed")
    return [
        TimelineStep(label="Booking Placed", completed=True, time=booking.created_at, exact=True),
        TimelineStep(
            label="Order Accepted",
            completed=accepted,
            time=booking.updated_at if accepted else None,
            exact=status == "accepted",
        ),
        TimelineStep(
            label="Work Finished",
            completed=status in ("work_done", "completed"),
            time=None,
            exact=False,
        ),
        TimelineStep(
            label="Job Completed",
            completed=status == "completed",
            time=booking.updated_at if status == "completed" else None,
            exact=status == "completed",
        ),
    ]
