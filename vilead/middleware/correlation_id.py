from __future__ import annotations

import re
import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from vilead.context import reset_correlation_id, set_correlation_id

_CORRELATION_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def clean_correlation_id(value: str | None) -> str | None:
    """Return the caller's id when it is short and log-safe, else ``None``."""

    if value and _CORRELATION_ID_RE.match(value.strip()):
        return value.strip()
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = clean_correlation_id(request.headers.get("x-correlation-id")) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        span = trace.get_current_span()
        recording = span is not None and span.is_recording()
        if recording:
            span.set_attribute("correlation_id", correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        # set by the bearer dependency once the token is verified
        user_id = getattr(getattr(request.state, "context", None), "user_id", None)
        if recording and user_id:
            span.set_attribute("enduser.id", user_id)

        response.headers["x-correlation-id"] = correlation_id
        return response
