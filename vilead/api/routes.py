from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from vilead.api.errors import crm_error_response, error_response
from vilead.core.auth import get_current_user
from vilead.core.config import get_settings
from vilead.crm.api import leads_router
from vilead.identity.api import auth_router
from vilead.metrics import generate_metrics_payload, metrics_content_type
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import CRMError
from vilead.platform.security.guard import require
from vilead.platform.security.policies import Action, Resource

router = APIRouter()
router.include_router(auth_router)
router.include_router(leads_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(request: Request, user: ActorUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        return error_response(request, status_code=404, code="not_found", message="not found")
    try:
        require(user, Resource.SETTINGS, Action.MANAGE)
    except CRMError as exc:
        return crm_error_response(request, exc, "metrics_read_failed")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
