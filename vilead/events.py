from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any

from vilead.context import get_correlation_id
from vilead.core.events import event_bus

RECENT_EVENTS_LIMIT = 500

# most recent envelopes only; subscribers on event_bus see every event
published_events: deque[dict[str, Any]] = deque(maxlen=RECENT_EVENTS_LIMIT)


def build_envelope(event_type: str, actor_user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "actor_user_id": actor_user_id,
        "version": 1,
        "payload": payload,
    }


def publish(envelope: dict[str, Any]) -> None:
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.publish(event_type, envelope)
