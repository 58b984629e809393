from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from vilead.api.errors import crm_error_response
from vilead.core.auth import get_current_user
from vilead.core.config import get_settings
from vilead.core.database import get_db
from vilead.crm.import_export import export_leads_csv, import_leads
from vilead.crm.query import LeadFilters
from vilead.crm.schemas import (
    LeadActivityRead,
    LeadAssignFailure,
    LeadAssignRequest,
    LeadAssignResponse,
    LeadCreate,
    LeadDetailRead,
    LeadImportResponse,
    LeadImportRowError,
    LeadListResponse,
    LeadNoteCreate,
    LeadRead,
    LeadStageChangeRequest,
    LeadUpdate,
)
from vilead.crm.workflow import lead_service
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import CRMError

leads_router = APIRouter(prefix="/api/leads", tags=["crm.leads"])


def _lead_filters(
    source: str | None = Query(default=None),
    region: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    stage: str | None = Query(default=None),
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    search: str | None = Query(default=None),
) -> LeadFilters:
    return LeadFilters(
        source=source,
        region=region,
        status=status_filter,
        stage=stage,
        assigned_to=assigned_to,
        search=search,
    )


@leads_router.get("", response_model=LeadListResponse)
def list_leads(
    request: Request,
    filters: LeadFilters = Depends(_lead_filters),
    page: int = Query(default=1),
    limit: int | None = Query(default=None, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadListResponse | JSONResponse:
    page_size = limit if limit is not None else get_settings().default_page_size
    try:
        result = lead_service.list_leads(db, user, filters, page=page, page_size=page_size)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_list_failed")
    return LeadListResponse(
        leads=[LeadRead.model_validate(lead) for lead in result.items],
        total=result.total,
    )


@leads_router.get("/export")
def export_leads(
    request: Request,
    filters: LeadFilters = Depends(_lead_filters),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        content = export_leads_csv(db, user, filters)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_export_failed")
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="leads.csv"'},
    )


@leads_router.post("/import")
def import_leads_file(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> JSONResponse:
    try:
        content = file.file.read()
        result = import_leads(db, user, file.filename, content)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_import_failed")

    body = LeadImportResponse(
        message=result.message,
        leads=[LeadRead.model_validate(lead) for lead in result.leads],
        errors=[LeadImportRowError(**error) for error in result.errors] or None,
    )
    payload = body.model_dump(mode="json", by_alias=True)
    if body.errors is None:
        payload.pop("errors")
    return JSONResponse(content=payload)


@leads_router.post("/assign", response_model=LeadAssignResponse, response_model_exclude_none=True)
def assign_leads(
    request: Request,
    dto: LeadAssignRequest,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadAssignResponse | JSONResponse:
    try:
        result = lead_service.assign_leads(db, user, dto.lead_ids, dto.user_id)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_assign_failed")

    failures = [LeadAssignFailure(lead_id=item.lead_id, error=item.error) for item in result.failures]
    return LeadAssignResponse(
        message=f"Assigned {len(result.assigned)} leads successfully",
        assigned=len(result.assigned),
        errors=failures or None,
    )


@leads_router.get("/{lead_id}", response_model=LeadDetailRead)
def get_lead(
    request: Request,
    lead_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadDetailRead | JSONResponse:
    try:
        lead = lead_service.get_lead(db, user, lead_id)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_get_failed")
    return LeadDetailRead.model_validate(lead)


@leads_router.get("/{lead_id}/activities", response_model=list[LeadActivityRead])
def list_lead_activities(
    request: Request,
    lead_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[LeadActivityRead] | JSONResponse:
    try:
        activities = lead_service.list_activities(db, user, lead_id)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_activities_failed")
    return [LeadActivityRead.model_validate(item) for item in activities]


@leads_router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    request: Request,
    dto: LeadCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        lead = lead_service.create_lead(db, user, dto)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_create_failed")
    return LeadRead.model_validate(lead)


@leads_router.put("/{lead_id}", response_model=LeadRead)
def update_lead(
    request: Request,
    lead_id: int,
    dto: LeadUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        lead = lead_service.update_lead(db, user, lead_id, dto)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_update_failed")
    return LeadRead.model_validate(lead)


@leads_router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(
    request: Request,
    lead_id: int,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        lead_service.delete_lead(db, user, lead_id)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_delete_failed")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@leads_router.put("/{lead_id}/stage", response_model=LeadRead)
def change_lead_stage(
    request: Request,
    lead_id: int,
    dto: LeadStageChangeRequest,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        lead = lead_service.change_stage(db, user, lead_id, dto.stage)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_stage_change_failed")
    return LeadRead.model_validate(lead)


@leads_router.post("/{lead_id}/notes", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def add_lead_note(
    request: Request,
    lead_id: int,
    dto: LeadNoteCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        lead = lead_service.add_note(db, user, lead_id, dto.content, is_contact=dto.is_contact)
    except CRMError as exc:
        return crm_error_response(request, exc, "crm_lead_note_failed")
    return LeadRead.model_validate(lead)
