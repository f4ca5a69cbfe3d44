from typing import List

from fastapi import APIRouter, Depends, Request, WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from .broadcast import BroadcastChannel
from .db import get_db
from .lifecycle import (
    BookingLifecycleEngine,
    get_booking_for,
    list_bookings_for,
    list_all_bookings,
    timeline,
)
from .messaging import MessagingService
from .notifications import list_notifications, mark_read, mark_all_read
from .payments import PaymentSettlement
from .rbac import require_role
from .reviews import submit_review, reviews_for_worker, recent_reviews
from .schemas import (
    AdminStatusRequest,
    BookingResponse,
    CreateBookingRequest,
    CreateReviewRequest,
    MarkAllReadResponse,
    MessageResponse,
    NotificationResponse,
    PaymentResult,
    ProcessPaymentRequest,
    ProcessPaymentResponse,
    ReviewResponse,
    SendMessageRequest,
    TimelineStep,
    UpdateStatusRequest,
    VerifyWorkerRequest,
    WorkerProfileResponse,
)
from .security import CurrentUser, get_current_user
from .workers import verify_worker, pending_workers

router = APIRouter()


def get_broadcast(request: Request) -> BroadcastChannel:
    return request.app.state.hub


# ================= REALTIME =================

@router.websocket("/ws")
async def realtime(websocket: WebSocket):
    await websocket.app.state.hub.serve(websocket)


# ================= BOOKINGS =================

@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED, tags=["Bookings"])
async def create_booking(
    data: CreateBookingRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcast: BroadcastChannel = Depends(get_broadcast),
):
    require_role(user, ["customer"])
    return await BookingLifecycleEngine(db, broadcast).create_booking(user, data)


@router.get("/bookings/my", response_model=List[BookingResponse], tags=["Bookings"])
async def my_bookings(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await list_bookings_for(db, user.id)


@router.get("/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(booking_id: str, user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await get_booking_for(db, booking_id, user)


@router.get("/bookings/{booking_id}/timeline", response_model=List[TimelineStep], tags=["Bookings"])
async def booking_timeline(booking_id: str, user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    booking = await get_booking_for(db, booking_id, user)
    return timeline(booking)


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse, tags=["Bookings"])
async def update_booking_status(
    booking_id: str,
    data: UpdateStatusRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcast: BroadcastChannel = Depends(get_broadcast),
):
    return await BookingLifecycleEngine(db, broadcast).update_status(
        booking_id,
        user,
        data.status,
        estimated_arrival=data.estimated_arrival,
        price=data.price,
    )


# ================= MESSAGES =================

@router.get("/bookings/{booking_id}/messages", response_model=List[MessageResponse], tags=["Messages"])
async def get_messages(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcast: BroadcastChannel = Depends(get_broadcast),
):
    return await MessagingService(db, broadcast).thread(booking_id, user)


@router.post(
    "/bookings/{booking_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Messages"],
)
async def send_message(
    booking_id: str,
    data: SendMessageRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcast: BroadcastChannel = Depends(get_broadcast),
):
    return await MessagingService(db, broadcast).post(booking_id, user, data.text)


# ================= PAYMENTS =================

@router.post("/payment/process", response_model=ProcessPaymentResponse, tags=["Payments"])
async def process_payment(
    data: ProcessPaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcast: BroadcastChannel = Depends(get_broadcast),
):
    booking, transaction_id = await PaymentSettlement(db, broadcast).process(
        data.booking_id, user, data.payment_method, data.amount
    )
    return ProcessPaymentResponse(data=PaymentResult(transaction_id=transaction_id, status=booking.payment_status))


# ================= REVIEWS =================

@router.post("/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED, tags=["Reviews"])
async def create_review(
    data: CreateReviewRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    require_role(user, ["customer"])
    return await submit_review(db, user, data)


@router.get("/reviews/recent", response_model=List[ReviewResponse], tags=["Reviews"])
async def get_recent_reviews(db: AsyncSession = Depends(get_db)):
    return await recent_reviews(db)


@router.get("/reviews/worker/{worker_id}", response_model=List[ReviewResponse], tags=["Reviews"])
async def get_worker_reviews(worker_id: str, db: AsyncSession = Depends(get_db)):
    return await reviews_for_worker(db, worker_id)


# ================= NOTIFICATIONS =================

@router.get("/notifications", response_model=List[NotificationResponse], tags=["Notifications"])
async def my_notifications(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await list_notifications(db, user.id)


@router.patch("/notifications/read-all", response_model=MarkAllReadResponse, tags=["Notifications"])
async def read_all_notifications(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    updated = await mark_all_read(db, user.id)
    return MarkAllReadResponse(updated=updated)


@router.patch("/notifications/{notification_id}/read", response_model=NotificationResponse, tags=["Notifications"])
async def read_notification(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await mark_read(db, notification_id, user.id)


# ================= ADMIN =================

@router.get("/admin/bookings", response_model=List[BookingResponse], tags=["Admin"])
async def admin_list_bookings(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    require_role(user, ["admin"])
    return await list_all_bookings(db)


@router.patch("/admin/bookings/{booking_id}", response_model=BookingResponse, tags=["Admin"])
async def admin_override_status(
    booking_id: str,
    data: AdminStatusRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broadcast: BroadcastChannel = Depends(get_broadcast),
):
    require_role(user, ["admin"])
    return await BookingLifecycleEngine(db, broadcast).override_status(booking_id, data.status, user)


@router.get("/admin/workers/pending", response_model=List[WorkerProfileResponse], tags=["Admin"])
async def admin_pending_workers(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    require_role(user, ["admin"])
    return await pending_workers(db)


@router.patch("/admin/workers/verify", response_model=WorkerProfileResponse, tags=["Admin"])
async def admin_verify_worker(
    data: VerifyWorkerRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    require_role(user, ["admin"])
    return await verify_worker(db, data.worker, data.status)
