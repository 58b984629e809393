from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi.responses import JSONResponse
from starlette.requests import Request

from vilead.context import get_correlation_id
from vilead.platform.security.errors import CRMError


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def crm_error_response(request: Request, exc: CRMError, code: str) -> JSONResponse:
    details: dict[str, Any] = {"kind": exc.kind}
    if exc.details is not None:
        details["context"] = exc.details
    response = error_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=exc.message,
        details=details,
    )
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


async def crm_error_handler(request: Request, exc: CRMError) -> JSONResponse:
    """Covers errors raised outside a route body, such as the bearer-token dependency."""

    return crm_error_response(request, exc, exc.kind)
