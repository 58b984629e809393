from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

authz_denied_total = Counter(
    "authz_denied_total",
    "Authorization denials by resource and action",
    ["resource", "action", "role"],
)

scope_resolutions_total = Counter(
    "scope_resolutions_total",
    "Scope resolutions by resource and scope kind",
    ["resource", "scope"],
)

lead_operations_total = Counter(
    "lead_operations_total",
    "Lead workflow operations by outcome",
    ["operation", "outcome"],
)

lead_import_rows_total = Counter(
    "lead_import_rows_total",
    "Imported lead rows by outcome",
    ["outcome"],
)

lead_import_duration_seconds = Histogram(
    "lead_import_duration_seconds",
    "Lead import duration in seconds",
)


_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    return _INT_RE.sub("/{id}", path)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_authz_denied(resource: str, action: str, role: str) -> None:
    authz_denied_total.labels(resource=resource, action=action, role=role).inc()


def observe_scope_resolution(resource: str, scope: str) -> None:
    scope_resolutions_total.labels(resource=resource, scope=scope).inc()


def observe_lead_operation(operation: str, outcome: str, count: int = 1) -> None:
    if count > 0:
        lead_operations_total.labels(operation=operation, outcome=outcome).inc(count)


def observe_lead_import(succeeded: int, failed: int, duration: float) -> None:
    if succeeded > 0:
        lead_import_rows_total.labels(outcome="created").inc(succeeded)
    if failed > 0:
        lead_import_rows_total.labels(outcome="failed").inc(failed)
    lead_import_duration_seconds.observe(duration)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
