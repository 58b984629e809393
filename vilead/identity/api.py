from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from vilead.api.errors import crm_error_response, error_response
from vilead.core.auth import get_current_user
from vilead.core.config import get_settings
from vilead.core.database import get_db
from vilead.identity.schemas import CapabilitiesRead, DemoTokenRequest, LoginRequest, TokenResponse, UserRead
from vilead.identity.service import identity_service
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import CRMError

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/login", response_model=TokenResponse)
def login(
    request: Request,
    dto: LoginRequest,
    db: Session = Depends(get_db),
) -> TokenResponse | JSONResponse:
    try:
        issued = identity_service.login(db, str(dto.email), dto.password)
    except CRMError as exc:
        return crm_error_response(request, exc, "auth_login_failed")
    return TokenResponse(token=issued.token, user=UserRead.model_validate(issued.user))


@auth_router.post("/demo-token", response_model=TokenResponse)
def demo_token(
    request: Request,
    dto: DemoTokenRequest,
    db: Session = Depends(get_db),
) -> TokenResponse | JSONResponse:
    if not get_settings().demo_mode_enabled:
        return error_response(request, status_code=404, code="not_found", message="not found")
    issued = identity_service.issue_demo_token(db, dto.role)
    return TokenResponse(token=issued.token, user=UserRead.model_validate(issued.user))


@auth_router.get("/user", response_model=UserRead)
def current_user(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> UserRead | JSONResponse:
    try:
        stored = identity_service.get_user(db, user)
    except CRMError as exc:
        return crm_error_response(request, exc, "auth_user_failed")
    return UserRead.model_validate(stored)


@auth_router.get("/capabilities", response_model=CapabilitiesRead)
def capabilities(user: ActorUser = Depends(get_current_user)) -> CapabilitiesRead:
    return CapabilitiesRead(**identity_service.capabilities(user).as_dict())
