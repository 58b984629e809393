from __future__ import annotations

import csv
import io
import logging
import time
import zipfile
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
from opentelemetry import trace
from pydantic import ValidationError
from sqlalchemy.orm import Session

from vilead.crm.models import CRMLead
from vilead.crm.query import LeadFilters, iter_scoped_leads
from vilead.crm.schemas import LeadCreate
from vilead.crm.workflow import LeadService, lead_service
from vilead.metrics import observe_lead_import
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import CRMError, InvalidArgumentError
from vilead.platform.security.guard import require
from vilead.platform.security.policies import Action, Resource


logger = logging.getLogger("app.crm.import")
tracer = trace.get_tracer("app.crm.import")

# first non-empty column wins
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("Tên", "Name"),
    "phone": ("Số điện thoại", "Phone"),
    "email": ("Email",),
    "region": ("Khu vực", "Region"),
    "product": ("Sản phẩm", "Product"),
    "notes": ("Ghi chú", "Notes"),
}

EXPORT_COLUMNS = [
    "id",
    "name",
    "phone",
    "email",
    "source",
    "region",
    "product",
    "status",
    "stage",
    "value",
    "assigned_to",
    "tags",
    "notes",
    "created_at",
]


@dataclass
class LeadImportResult:
    leads: list[CRMLead] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Imported {len(self.leads)} leads successfully"


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def read_lead_rows(filename: str | None, content: bytes) -> list[dict[str, Any]]:
    """Parse an uploaded ``.csv`` or ``.xlsx`` file into one dict per data row."""

    name = (filename or "").lower()
    if not name.endswith((".csv", ".xlsx")):
        raise InvalidArgumentError("unsupported file type, expected .csv or .xlsx", details={"filename": filename})

    buffer = io.BytesIO(content)
    try:
        if name.endswith(".csv"):
            frame = pd.read_csv(buffer, dtype=str, keep_default_na=False)
        else:
            frame = pd.read_excel(buffer, dtype=str, engine="openpyxl")
    except (ValueError, KeyError, zipfile.BadZipFile, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise InvalidArgumentError("could not read uploaded file", details={"error": str(exc)[:500]}) from exc

    frame = frame.astype(object).where(pd.notnull(frame), None)
    return frame.to_dict(orient="records")


def map_import_row(row: dict[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {"source": "manual", "status": "new"}
    for field_name, aliases in COLUMN_ALIASES.items():
        value = ""
        for alias in aliases:
            value = _cell(row.get(alias))
            if value:
                break
        payload[field_name] = value or None
    payload["name"] = payload["name"] or ""
    return payload


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def import_leads(
    session: Session,
    actor_user: ActorUser,
    filename: str | None,
    content: bytes,
    service: LeadService | None = None,
) -> LeadImportResult:
    require(actor_user, Resource.LEADS, Action.IMPORT_EXPORT)
    service = service or lead_service
    started = time.perf_counter()
    rows = read_lead_rows(filename, content)
    result = LeadImportResult()

    with tracer.start_as_current_span("crm.lead.import") as span:
        span.set_attribute("rows_total", len(rows))
        if actor_user.correlation_id:
            span.set_attribute("correlation_id", actor_user.correlation_id)

        for index, row in enumerate(rows, start=1):
            try:
                dto = LeadCreate.model_validate(map_import_row(row))
                dto = dto.model_copy(update={"assigned_to": actor_user.user_id})
                result.leads.append(service.create_lead(session, actor_user, dto))
            except ValidationError as exc:
                result.errors.append({"row": index, "error": _validation_message(exc)})
            except CRMError as exc:
                session.rollback()
                result.errors.append({"row": index, "error": exc.message})

        span.set_attribute("rows_created", len(result.leads))
        span.set_attribute("rows_failed", len(result.errors))

    observe_lead_import(len(result.leads), len(result.errors), time.perf_counter() - started)
    logger.info(
        "lead.import.finished",
        extra={
            "user_id": actor_user.user_id,
            "rows_total": len(rows),
            "rows_failed": len(result.errors),
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
    return result


def _export_row(lead: CRMLead) -> dict[str, Any]:
    return {
        "id": lead.id,
        "name": lead.name,
        "phone": lead.phone or "",
        "email": lead.email or "",
        "source": lead.source,
        "region": lead.region or "",
        "product": lead.product or "",
        "status": lead.status,
        "stage": lead.stage,
        "value": "" if lead.value is None else str(lead.value),
        "assigned_to": lead.assigned_to or "",
        "tags": ";".join(lead.tags or []),
        "notes": lead.notes or "",
        "created_at": lead.created_at.isoformat() if lead.created_at else "",
    }


def export_leads_csv(session: Session, actor_user: ActorUser, filters: LeadFilters | None = None) -> str:
    require(actor_user, Resource.LEADS, Action.IMPORT_EXPORT)
    leads = iter_scoped_leads(session, actor_user, filters)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for lead in leads:
        writer.writerow(_export_row(lead))

    logger.info("lead.export.finished", extra={"user_id": actor_user.user_id, "rows_total": len(leads)})
    return output.getvalue()
