from conftest import CUSTOMER, WORKER, STRANGER


async def test_create_unassigned_booking_sends_no_notification(create_booking, broadcast, notification_count):
    booking = await create_booking(worker_id=None)

    assert booking["status"] == "pending"
    assert booking["payment_status"] == "pending"
    assert booking["customer_id"] == CUSTOMER
    assert booking["worker_id"] is None
    assert await notification_count() == 0

    created = broadcast.named("booking-created")
    assert len(created) == 1
    assert created[0]["payload"]["id"] == booking["id"]


async def test_create_booking_for_worker_notifies_worker_before_broadcast(create_booking, broadcast, notification_count):
    booking = await create_booking()

    assert await notification_count(recipient_id=WORKER, type="new-booking", related_id=booking["id"]) == 1

    created = broadcast.named("booking-created")
    assert len(created) == 1
    assert created[0]["notifications_committed"] == 1


async def test_only_customers_can_create_bookings(client, worker_headers):
    resp = await client.post(
        "/bookings",
        json={
            "service": "Electrician",
            "service_date": "2026-11-02T10:00:00+00:00",
            "address": "Blue Area",
            "phone": "03000000000",
        },
        headers=worker_headers,
    )
    assert resp.status_code == 403


async def test_create_booking_requires_token(client):
    resp = await client.post("/bookings", json={})
    assert resp.status_code == 401


async def test_worker_accepts_with_estimated_arrival(client, create_booking, worker_headers, broadcast, notification_count):
    booking = await create_booking()

    resp = await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "accepted", "estimated_arrival": "30 minutes"},
        headers=worker_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "accepted"
    assert body["estimated_arrival"] == "30 minutes"

    assert await notification_count(recipient_id=CUSTOMER, type="booking-update") == 1

    updated = broadcast.named("booking-updated")
    assert len(updated) == 1
    # new-booking for the worker plus booking-update for the customer
    assert updated[0]["notifications_committed"] == 2


async def test_customer_notification_mentions_new_status(client, create_booking, worker_headers, customer_headers):
    booking = await create_booking()
    await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "accepted", "estimated_arrival": "1 hour"},
        headers=worker_headers,
    )

    resp = await client.get("/notifications", headers=customer_headers)
    assert resp.status_code == 200
    [notification] = resp.json()
    assert notification["type"] == "booking-update"
    assert "accepted" in notification["message"]
    assert notification["related_id"] == booking["id"]
    assert notification["sender_id"] == WORKER


async def test_worker_accept_without_estimated_arrival_is_rejected(client, create_booking, worker_headers, notification_count):
    booking = await create_booking()

    resp = await client.patch(f"/bookings/{booking['id']}/status", json={"status": "accepted"}, headers=worker_headers)
    assert resp.status_code == 400
    assert await notification_count(recipient_id=CUSTOMER) == 0


async def test_stranger_cannot_transition_booking(client, create_booking, headers, broadcast, notification_count):
    booking = await create_booking()
    before = await notification_count()

    resp = await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "cancelled"},
        headers=headers(STRANGER, ["customer"]),
    )
    assert resp.status_code == 403
    assert await notification_count() == before
    assert broadcast.named("booking-updated") == []

    resp = await client.get(f"/bookings/{booking['id']}", headers=headers(CUSTOMER, ["customer"]))
    assert resp.json()["status"] == "pending"


async def test_invalid_status_is_rejected_for_every_actor(client, create_booking, customer_headers, worker_headers, headers):
    booking = await create_booking()

    for h in (customer_headers, worker_headers, headers(STRANGER, ["customer"])):
        for bogus in ("pending", "done", "", "ACCEPTED"):
            resp = await client.patch(f"/bookings/{booking['id']}/status", json={"status": bogus}, headers=h)
            assert resp.status_code == 400
            assert resp.json()["detail"] == "Invalid status"


async def test_unknown_booking_is_not_found(client, worker_headers):
    resp = await client.patch("/bookings/does-not-exist/status", json={"status": "accepted"}, headers=worker_headers)
    assert resp.status_code == 404


async def test_transition_outside_graph_is_rejected(client, create_booking, worker_headers):
    booking = await create_booking()

    resp = await client.patch(f"/bookings/{booking['id']}/status", json={"status": "completed"}, headers=worker_headers)
    assert resp.status_code == 400
    assert "pending" in resp.json()["detail"]


async def test_terminal_status_has_no_outgoing_transitions(client, create_booking, customer_headers, worker_headers):
    booking = await create_booking()
    resp = await client.patch(f"/bookings/{booking['id']}/status", json={"status": "cancelled"}, headers=customer_headers)
    assert resp.status_code == 200

    resp = await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "accepted", "estimated_arrival": "soon"},
        headers=worker_headers,
    )
    assert resp.status_code == 400


async def test_customer_cancel_notifies_worker_with_cancelled_type(client, create_booking, customer_headers, notification_count):
    booking = await create_booking()

    resp = await client.patch(f"/bookings/{booking['id']}/status", json={"status": "cancelled"}, headers=customer_headers)
    assert resp.status_code == 200
    assert await notification_count(recipient_id=WORKER, type="cancelled") == 1


async def test_customer_may_accept_own_booking(client, create_booking, customer_headers, notification_count):
    # Authorization is membership-only; whether customers should be able to
    # accept is an open product question, this pins current behaviour.
    booking = await create_booking()

    resp = await client.patch(f"/bookings/{booking['id']}/status", json={"status": "accepted"}, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"
    assert await notification_count(recipient_id=WORKER, type="booking-update") == 1


async def test_customer_transition_on_unassigned_booking_creates_no_notification(
    client, create_booking, customer_headers, broadcast, notification_count
):
    booking = await create_booking(worker_id=None)

    resp = await client.patch(f"/bookings/{booking['id']}/status", json={"status": "cancelled"}, headers=customer_headers)
    assert resp.status_code == 200
    assert await notification_count() == 0
    assert len(broadcast.named("booking-updated")) == 1


async def test_worker_revises_price_when_marking_work_done(client, create_booking, advance, worker_headers):
    booking = await create_booking(price=1000)
    await advance(booking["id"], "accepted")

    resp = await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "work_done", "price": 2200},
        headers=worker_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["price"] == 2200

    # Re-issuing the invoice is allowed
    resp = await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "work_done", "price": 2000},
        headers=worker_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["price"] == 2000


async def test_price_revision_outside_work_done_is_rejected(client, create_booking, advance, customer_headers, worker_headers):
    booking = await create_booking(price=1000)

    resp = await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "accepted", "estimated_arrival": "20 minutes", "price": 5000},
        headers=worker_headers,
    )
    assert resp.status_code == 400

    await advance(booking["id"], "accepted")
    resp = await client.patch(
        f"/bookings/{booking['id']}/status",
        json={"status": "work_done", "price": 1},
        headers=customer_headers,
    )
    assert resp.status_code == 400


async def test_every_successful_update_creates_exactly_one_notification(client, create_booking, worker_headers, notification_count):
    booking = await create_booking()
    steps = [
        {"status": "accepted", "estimated_arrival": "45 minutes"},
        {"status": "work_done"},
        {"status": "completed"},
    ]
    for i, body in enumerate(steps, start=1):
        resp = await client.patch(f"/bookings/{booking['id']}/status", json=body, headers=worker_headers)
        assert resp.status_code == 200
        assert await notification_count(recipient_id=CUSTOMER) == i

    assert await notification_count(recipient_id=CUSTOMER, type="completed") == 1


async def test_my_bookings_scoped_to_caller_newest_first(client, create_booking, customer_headers, worker_headers, headers):
    first = await create_booking()
    second = await create_booking(worker_id=None)

    resp = await client.get("/bookings/my", headers=customer_headers)
    assert [b["id"] for b in resp.json()] == [second["id"], first["id"]]

    resp = await client.get("/bookings/my", headers=worker_headers)
    assert [b["id"] for b in resp.json()] == [first["id"]]

    resp = await client.get("/bookings/my", headers=headers(STRANGER, ["customer"]))
    assert resp.json() == []


async def test_get_booking_requires_party_or_admin(client, create_booking, headers, admin_headers):
    booking = await create_booking()

    resp = await client.get(f"/bookings/{booking['id']}", headers=headers(STRANGER, ["customer"]))
    assert resp.status_code == 403

    resp = await client.get(f"/bookings/{booking['id']}", headers=admin_headers)
    assert resp.status_code == 200


async def test_timeline_reports_which_times_are_exact(client, create_booking, advance, customer_headers):
    booking = await create_booking()
    await advance(booking["id"], "work_done")

    resp = await client.get(f"/bookings/{booking['id']}/timeline", headers=customer_headers)
    assert resp.status_code == 200
    placed, accepted, finished, completed = resp.json()

    assert placed["completed"] and placed["exact"]
    assert accepted["completed"] and accepted["time"] is not None and not accepted["exact"]
    assert finished["completed"] and finished["time"] is None
    assert not completed["completed"] and completed["time"] is None


async def test_timeline_of_closed_booking_has_no_accept_time(client, create_booking, customer_headers, worker_headers):
    cancelled = await create_booking()
    await client.patch(f"/bookings/{cancelled['id']}/status", json={"status": "cancelled"}, headers=customer_headers)
    rejected = await create_booking()
    await client.patch(f"/bookings/{rejected['id']}/status", json={"status": "rejected"}, headers=worker_headers)

    for booking in (cancelled, rejected):
        resp = await client.get(f"/bookings/{booking['id']}/timeline", headers=customer_headers)
        placed, accepted, finished, completed = resp.json()
        assert placed["completed"]
        assert not accepted["completed"] and accepted["time"] is None
        assert not completed["completed"] and completed["time"] is None
