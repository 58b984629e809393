from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

LEAD_CREATED = "crm.lead.created"
LEAD_UPDATED = "crm.lead.updated"
LEAD_ASSIGNED = "crm.lead.assigned"
LEAD_STAGE_CHANGED = "crm.lead.stage_changed"
LEAD_DELETED = "crm.lead.deleted"


@dataclass
class InternalEvent:
    name: str
    payload: dict[str, Any]

    @property
    def lead_id(self) -> int | None:
        body = self.payload.get("payload")
        if isinstance(body, dict):
            return body.get("lead_id")
        return None


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous bus. A subscription ending in ``.*`` receives every event under that prefix."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._subscribers[event_name].append(handler)

    def _handlers_for(self, event_name: str) -> list[EventHandler]:
        handlers = list(self._subscribers.get(event_name, []))
        for pattern, subscribed in self._subscribers.items():
            if pattern.endswith(".*") and event_name.startswith(pattern[:-1]):
                handlers.extend(subscribed)
        return handlers

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        event = InternalEvent(name=event_name, payload=payload)
        for handler in self._handlers_for(event_name):
            handler(event)


event_bus = InProcessEventBus()
