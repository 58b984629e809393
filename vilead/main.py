from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from vilead.api.errors import crm_error_handler
from vilead.api.routes import router as api_router
from vilead.core.config import get_settings
from vilead.core.context import RequestContextMiddleware
from vilead.core.events import InternalEvent, event_bus
from vilead.logging import configure_logging
from vilead.middleware.correlation_id import CorrelationIdMiddleware
from vilead.middleware.rate_limit import LeadMutationRateLimitMiddleware
from vilead.middleware.request_logging import RequestLoggingMiddleware
from vilead.otel import get_fastapi_server_request_hook, setup_otel
from vilead.platform.security.errors import CRMError


configure_logging()
logger = logging.getLogger("app.lifecycle")
_subscriptions_registered = False


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def _on_lead_event(event: InternalEvent) -> None:
    logger.debug("domain_event", extra={"event_name": event.name, "lead_id": event.lead_id})


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        event_bus.subscribe("crm.lead.*", _on_lead_event)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(LeadMutationRateLimitMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_exception_handler(CRMError, crm_error_handler)
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel("vilead-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
