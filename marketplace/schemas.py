from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PaymentMethod = Literal["cash", "jazzcash", "easypaisa"]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---- Bookings ----

class CreateBookingRequest(BaseModel):
    service: str = Field(min_length=1)
    service_date: datetime
    address: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    notes: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    payment_method: PaymentMethod = "cash"
    worker_id: Optional[str] = None


class UpdateStatusRequest(BaseModel):
    # Left as a plain string so an unknown value is reported as an invalid status (400)
    status: str
    estimated_arrival: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)


class AdminStatusRequest(BaseModel):
    status: str


class BookingResponse(ORMModel):
    id: str
    customer_id: str
    worker_id: Optional[str] = None
    service: str
    service_date: datetime
    address: str
    phone: str
    notes: Optional[str] = None
    price: Optional[float] = None
    payment_method: str
    estimated_arrival: Optional[str] = None
    status: str
    payment_status: str
    transaction_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TimelineStep(BaseModel):
    label: str
    completed: bool
    time: Optional[datetime] = None
    exact: bool


# ---- Notifications ----

class NotificationResponse(ORMModel):
    id: str
    recipient_id: str
    sender_id: Optional[str] = None
    type: str
    message: str
    related_id: Optional[str] = None
    is_read: bool
    created_at: datetime


class MarkAllReadResponse(BaseModel):
    updated: int


# ---- Messages ----

class SendMessageRequest(BaseModel):
    text: str


class MessageResponse(ORMModel):
    id: str
    booking_id: str
    sender_id: str
    text: str
    created_at: datetime


# ---- Payments ----

class ProcessPaymentRequest(BaseModel):
    booking_id: str
    payment_method: PaymentMethod
    amount: float = Field(gt=0)


class PaymentResult(BaseModel):
    transaction_id: str
    status: str


class ProcessPaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment processed successfully"
    data: PaymentResult


# ---- Reviews ----

class CreateReviewRequest(BaseModel):
    booking_id: str
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1)


class ReviewResponse(ORMModel):
    id: str
    booking_id: str
    customer_id: str
    worker_id: str
    rating: int
    comment: str
    created_at: datetime


# ---- Workers ----

class WorkerRef(BaseModel):
    kind: Literal["profile", "user"]
    id: str


class VerifyWorkerRequest(BaseModel):
    worker: WorkerRef
    status: Literal["approved", "rejected"]


class WorkerProfileResponse(ORMModel):
    id: str
    user_id: str
    skill: str
    city: str
    area: str
    hourly_rate: float
    verification_status: str
    average_rating: float
    reviews_count: int
