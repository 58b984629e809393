from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ActorUser:
    """Authenticated caller as derived from a verified token."""

    user_id: str
    email: str
    role: str
    correlation_id: str | None = None
