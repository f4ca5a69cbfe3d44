import json
import uuid
from datetime import datetime, timezone

BOOKING_CREATED = "booking-created"
BOOKING_UPDATED = "booking-updated"
NEW_MESSAGE = "new-message"

# Routing keys used when realtime events are mirrored to the broker
ROUTING_KEYS = {
    BOOKING_CREATED: "booking.created",
    BOOKING_UPDATED: "booking.updated",
    NEW_MESSAGE: "message.created",
}


def build_event(event_type: str, data: dict) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False, default=str)
