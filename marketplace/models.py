import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Float, Integer, Boolean, Text, ForeignKey, CheckConstraint

from .db import Base

BOOKING_STATUSES = ("pending", "accepted", "rejected", "work_done", "completed", "cancelled")
TERMINAL_STATUSES = ("rejected", "completed", "cancelled")
PAYMENT_METHODS = ("cash", "jazzcash", "easypaisa")
NOTIFICATION_TYPES = ("new-booking", "booking-update", "completed", "cancelled", "payment", "system", "message")
VERIFICATION_STATUSES = ("pending", "approved", "rejected")


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)

    customer_id = Column(String, nullable=False, index=True)
    worker_id = Column(String, nullable=True, index=True)

    service = Column(String, nullable=False)
    service_date = Column(DateTime(timezone=True), nullable=False)
    address = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    price = Column(Float, nullable=True)
    payment_method = Column(String, nullable=False, default="cash")
    estimated_arrival = Column(String, nullable=True)

    status = Column(String, nullable=False, default="pending", index=True)
    payment_status = Column(String, nullable=False, default="pending")
    transaction_id = Column(String, nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    recipient_id = Column(String, nullable=False, index=True)
    sender_id = Column(String, nullable=True)
    type = Column(String, nullable=False)
    message = Column(String, nullable=False)
    related_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    customer_id = Column(String, nullable=False)
    worker_id = Column(String, nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class WorkerProfile(Base):
    __tablename__ = "worker_profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String, unique=True, nullable=False)
    skill = Column(String, nullable=False)
    city = Column(String, nullable=False)
    area = Column(String, nullable=False)
    hourly_rate = Column(Float, nullable=False, default=500)
    verification_status = Column(String, nullable=False, default="pending", index=True)
    average_rating = Column(Float, nullable=False, default=0)
    reviews_count = Column(Integer, nullable=False, default=0)
