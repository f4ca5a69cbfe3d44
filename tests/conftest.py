import os

# Settings are read at import time, so they must be in place before the app loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["PAYMENT_DELAY_SECONDS"] = "0"
os.environ.pop("REDIS_URL", None)
os.environ.pop("RABBIT_URL", None)

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy import func, select

from marketplace.db import Base, get_db, get_engine, get_sessionmaker
from marketplace.main import app
from marketplace.models import Notification, WorkerProfile
from marketplace.routes import get_broadcast
from marketplace.security import CurrentUser

CUSTOMER = "cust-1"
WORKER = "work-1"
STRANGER = "cust-2"
ADMIN = "admin-1"


class RecordingBroadcast:
    """
    Records each published event together with the number of notifications
    visible to a fresh session at the moment of publishing.
    """

    def __init__(self, sessionmaker):
        self.sessionmaker = sessionmaker
        self.events = []

    async def publish(self, event_name: str, payload: dict) -> None:
        async with self.sessionmaker() as session:
            res = await session.execute(select(func.count()).select_from(Notification))
            committed = res.scalar_one()
        self.events.append({"event": event_name, "payload": payload, "notifications_committed": committed})

    def named(self, event_name: str):
        return [e for e in self.events if e["event"] == event_name]


def make_token(sub: str, roles, name: str | None = None) -> str:
    payload = {"sub": sub, "roles": roles}
    if name:
        payload["name"] = name
    return jwt.encode(payload, os.environ["JWT_SECRET"], algorithm="HS256")


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return get_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def broadcast(sessionmaker):
    return RecordingBroadcast(sessionmaker)


@pytest_asyncio.fixture
async def client(sessionmaker, broadcast):
    async def _get_db():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_broadcast] = lambda: broadcast

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    def _headers(sub: str, roles=None, name: str | None = None) -> dict:
        return {"Authorization": f"Bearer {make_token(sub, roles or ['customer'], name)}"}

    return _headers


@pytest.fixture
def customer_headers(headers):
    return headers(CUSTOMER, ["customer"], name="Ayesha")


@pytest.fixture
def worker_headers(headers):
    return headers(WORKER, ["worker"], name="Bilal")


@pytest.fixture
def admin_headers(headers):
    return headers(ADMIN, ["admin"])


@pytest.fixture
def customer():
    return CurrentUser(id=CUSTOMER, roles=["customer"], name="Ayesha")


@pytest.fixture
def worker():
    return CurrentUser(id=WORKER, roles=["worker"], name="Bilal")


@pytest.fixture
def create_booking(client, customer_headers):
    async def _create(worker_id: str | None = WORKER, **overrides) -> dict:
        body = {
            "service": "Plumber",
            "service_date": "2026-11-02T10:00:00+00:00",
            "address": "House 12, Street 4, F-7",
            "phone": "03001234567",
            "notes": "Kitchen sink leaking",
            "price": 1500,
            "payment_method": "cash",
        }
        if worker_id is not None:
            body["worker_id"] = worker_id
        body.update(overrides)
        resp = await client.post("/bookings", json=body, headers=customer_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def advance(client, worker_headers):
    """Drive a booking along the worker path up to `target`."""

    async def _advance(booking_id: str, target: str) -> dict:
        path = ["accepted", "work_done", "completed"]
        resp = None
        for status in path[: path.index(target) + 1]:
            body = {"status": status}
            if status == "accepted":
                body["estimated_arrival"] = "30 minutes"
            resp = await client.patch(f"/bookings/{booking_id}/status", json=body, headers=worker_headers)
            assert resp.status_code == 200, resp.text
        return resp.json()

    return _advance


@pytest_asyncio.fixture
async def worker_profile(db):
    profile = WorkerProfile(user_id=WORKER, skill="Plumber", city="Islamabad", area="F-7")
    db.add(profile)
    await db.commit()
    return profile


async def count_notifications(sessionmaker, **filters) -> int:
    async with sessionmaker() as session:
        stmt = select(func.count()).select_from(Notification)
        for field, value in filters.items():
            stmt = stmt.where(getattr(Notification, field) == value)
        res = await session.execute(stmt)
        return res.scalar_one()


@pytest.fixture
def notification_count(sessionmaker):
    async def _count(**filters) -> int:
        return await count_notifications(sessionmaker, **filters)

    return _count
