from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Any

from opentelemetry import trace
from sqlalchemy.orm import Session

from vilead import events
from vilead.core.config import get_settings
from vilead.core.events import LEAD_ASSIGNED, LEAD_CREATED, LEAD_DELETED, LEAD_STAGE_CHANGED, LEAD_UPDATED
from vilead.crm.models import CRMLead, CRMLeadActivity, utcnow
from vilead.crm.query import LeadFilters, LeadPage, query_leads
from vilead.crm.repositories import LeadRepository, user_exists
from vilead.crm.schemas import LeadCreate, LeadUpdate
from vilead.crm.search import refresh_search_text
from vilead.metrics import observe_lead_operation
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import InvalidArgumentError, NotFoundError
from vilead.platform.security.guard import require
from vilead.platform.security.policies import Action, Resource
from vilead.platform.security.scope import TeamRoster, resolve_scope


logger = logging.getLogger("app.crm.leads")
tracer = trace.get_tracer("app.crm.leads")


class LeadStage(StrEnum):
    RECEPTION = "reception"
    CONSULTING = "consulting"
    QUOTED = "quoted"
    NEGOTIATING = "negotiating"
    CLOSED = "closed"
    CANCELLED = "cancelled"


PIPELINE_STAGES: tuple[LeadStage, ...] = (
    LeadStage.RECEPTION,
    LeadStage.CONSULTING,
    LeadStage.QUOTED,
    LeadStage.NEGOTIATING,
    LeadStage.CLOSED,
)


class ActivityType(StrEnum):
    LEAD_CREATED = "lead_created"
    LEAD_UPDATED = "lead_updated"
    ASSIGN = "assign"
    STAGE_CHANGED = "stage_changed"
    NOTE_ADDED = "note_added"


def parse_stage(value: str) -> LeadStage:
    try:
        return LeadStage(str(value).strip().lower())
    except ValueError as exc:
        allowed = [stage.value for stage in LeadStage]
        raise InvalidArgumentError(
            f"invalid stage '{value}'",
            details={"stage": value, "allowed": allowed},
        ) from exc


def check_stage_transition(current: str, target: LeadStage, *, forward_only: bool = False) -> None:
    """Raise ``InvalidArgumentError`` when moving from ``current`` to ``target`` is not allowed.

    Closed leads cannot be cancelled and cancelled leads only leave by a reset
    to reception. Any other move is accepted unless ``forward_only`` is set, in
    which case backward moves are rejected (cancellation and reset to reception
    remain available).
    """

    details = {"from_stage": current, "to_stage": target.value}
    if current == LeadStage.CLOSED and target == LeadStage.CANCELLED:
        raise InvalidArgumentError("a closed lead cannot be cancelled", details=details)
    if current == LeadStage.CANCELLED and target not in (LeadStage.CANCELLED, LeadStage.RECEPTION):
        raise InvalidArgumentError("a cancelled lead can only be reset to reception", details=details)
    if not forward_only or target in (LeadStage.CANCELLED, LeadStage.RECEPTION):
        return
    if current in PIPELINE_STAGES and PIPELINE_STAGES.index(target) < PIPELINE_STAGES.index(LeadStage(current)):
        raise InvalidArgumentError("stage can only move forward", details=details)


@dataclass(frozen=True)
class AssignFailure:
    lead_id: int
    error: str


@dataclass
class AssignResult:
    assigned: list[CRMLead] = field(default_factory=list)
    failures: list[AssignFailure] = field(default_factory=list)


_PLAIN_FIELDS = ("name", "phone", "email", "source", "region", "product", "content", "notes", "status", "value", "tags")


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


class LeadService:
    entity_type = "crm.lead"

    def __init__(self, roster: TeamRoster | None = None) -> None:
        self.roster = roster
        self.repository = LeadRepository()

    def list_leads(
        self,
        session: Session,
        actor_user: ActorUser,
        filters: LeadFilters | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> LeadPage:
        return query_leads(session, actor_user, filters, page=page, page_size=page_size, roster=self.roster)

    def get_lead(self, session: Session, actor_user: ActorUser, lead_id: int) -> CRMLead:
        require(actor_user, Resource.LEADS, Action.VIEW)
        return self._load_in_scope(session, actor_user, lead_id)

    def list_activities(self, session: Session, actor_user: ActorUser, lead_id: int) -> list[CRMLeadActivity]:
        lead = self.get_lead(session, actor_user, lead_id)
        return list(lead.activities)

    def create_lead(self, session: Session, actor_user: ActorUser, dto: LeadCreate) -> CRMLead:
        require(actor_user, Resource.LEADS, Action.EDIT)

        assigned_to = dto.assigned_to or actor_user.user_id
        if not user_exists(session, assigned_to):
            raise InvalidArgumentError(
                f"assignee '{assigned_to}' does not exist",
                details={"assigned_to": assigned_to},
            )

        lead = CRMLead(
            name=dto.name,
            phone=dto.phone,
            email=str(dto.email) if dto.email is not None else None,
            source=dto.source,
            region=dto.region,
            product=dto.product,
            content=dto.content,
            notes=dto.notes,
            status=dto.status,
            stage=LeadStage.RECEPTION.value,
            value=dto.value,
            assigned_to=assigned_to,
            created_by=actor_user.user_id,
            tags=list(dto.tags),
        )
        refresh_search_text(lead)
        self._append_activity(
            lead,
            actor_user,
            ActivityType.LEAD_CREATED,
            "Lead created",
            {"stage": lead.stage, "assigned_to": assigned_to},
        )
        session.add(lead)
        session.flush()

        events.publish(
            events.build_envelope(
                LEAD_CREATED,
                actor_user.user_id,
                {"lead_id": lead.id, "assigned_to": assigned_to, "stage": lead.stage},
            )
        )
        session.commit()
        observe_lead_operation("create", "success")
        logger.info(
            "lead.created",
            extra={"lead_id": lead.id, "user_id": actor_user.user_id, "assigned_to": assigned_to},
        )
        return lead

    def update_lead(self, session: Session, actor_user: ActorUser, lead_id: int, dto: LeadUpdate) -> CRMLead:
        lead = self._load_for_edit(session, actor_user, lead_id)
        payload = dto.model_dump(exclude_unset=True)

        new_assignee: str | None = None
        assignment_changed = "assigned_to" in payload and payload["assigned_to"] != lead.assigned_to
        if assignment_changed:
            require(actor_user, Resource.LEADS, Action.ASSIGN)
            new_assignee = payload["assigned_to"]
            if new_assignee is not None and not user_exists(session, new_assignee):
                raise InvalidArgumentError(
                    f"assignee '{new_assignee}' does not exist",
                    details={"assigned_to": new_assignee},
                )

        new_stage: LeadStage | None = None
        if payload.get("stage") is not None:
            requested = parse_stage(payload["stage"])
            if requested != lead.stage:
                check_stage_transition(lead.stage, requested, forward_only=get_settings().enforce_forward_only_stages)
                new_stage = requested
        elif "stage" in payload:
            raise InvalidArgumentError("stage must not be null", details={"stage": None})

        if "name" in payload and payload["name"] is None:
            raise InvalidArgumentError("name must not be null", details={"name": None})
        if "email" in payload and payload["email"] is not None:
            payload["email"] = str(payload["email"])

        changed: dict[str, dict[str, Any]] = {}
        for field_name in _PLAIN_FIELDS:
            if field_name not in payload:
                continue
            value = payload[field_name]
            if field_name in {"source", "status"} and value is None:
                continue
            if field_name == "tags" and value is None:
                value = []
            current = getattr(lead, field_name)
            if current == value:
                continue
            changed[field_name] = {"old": _json_value(current), "new": _json_value(value)}
            setattr(lead, field_name, value)

        if not changed and not assignment_changed and new_stage is None:
            return lead

        if changed:
            refresh_search_text(lead)
            self._append_activity(
                lead,
                actor_user,
                ActivityType.LEAD_UPDATED,
                f"Lead updated: {', '.join(changed)}",
                {"changed_fields": sorted(changed), "changes": changed},
            )
        if assignment_changed:
            self._apply_assignment(lead, actor_user, new_assignee)
        if new_stage is not None:
            self._apply_stage(lead, actor_user, new_stage)

        lead.updated_at = utcnow()
        events.publish(
            events.build_envelope(
                LEAD_UPDATED,
                actor_user.user_id,
                {"lead_id": lead.id, "changed_fields": sorted(changed)},
            )
        )
        session.commit()
        observe_lead_operation("update", "success")
        logger.info("lead.updated", extra={"lead_id": lead.id, "user_id": actor_user.user_id})
        return lead

    def assign_leads(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_ids: Sequence[int],
        target_user_id: str,
    ) -> AssignResult:
        """Assign each lead in order; a lead that is absent or out of scope fails on its own."""

        require(actor_user, Resource.LEADS, Action.ASSIGN)
        if not user_exists(session, target_user_id):
            raise InvalidArgumentError(
                f"assignee '{target_user_id}' does not exist",
                details={"user_id": target_user_id},
            )

        scope = resolve_scope(actor_user, Resource.LEADS, self.roster)
        result = AssignResult()
        with tracer.start_as_current_span("crm.lead.assign") as span:
            span.set_attribute("lead_count", len(lead_ids))
            span.set_attribute("target_user_id", target_user_id)
            if actor_user.correlation_id:
                span.set_attribute("correlation_id", actor_user.correlation_id)

            for lead_id in lead_ids:
                lead = self.repository.get_in_scope(session, lead_id, scope)
                if lead is None:
                    result.failures.append(AssignFailure(lead_id=lead_id, error=NotFoundError.kind))
                    continue

                self._apply_assignment(lead, actor_user, target_user_id)
                lead.updated_at = utcnow()
                session.commit()
                result.assigned.append(lead)

            span.set_attribute("assigned", len(result.assigned))
            span.set_attribute("failed", len(result.failures))

        observe_lead_operation("assign", "success", len(result.assigned))
        observe_lead_operation("assign", "not_found", len(result.failures))
        logger.info(
            "lead.assigned",
            extra={
                "lead_ids": [lead.id for lead in result.assigned],
                "assigned_to": target_user_id,
                "user_id": actor_user.user_id,
                "rows_failed": len(result.failures),
            },
        )
        return result

    def change_stage(self, session: Session, actor_user: ActorUser, lead_id: int, stage: str) -> CRMLead:
        lead = self._load_for_edit(session, actor_user, lead_id)
        target = parse_stage(stage)
        check_stage_transition(lead.stage, target, forward_only=get_settings().enforce_forward_only_stages)

        self._apply_stage(lead, actor_user, target)
        lead.updated_at = utcnow()
        session.commit()
        observe_lead_operation("change_stage", "success")
        return lead

    def delete_lead(self, session: Session, actor_user: ActorUser, lead_id: int) -> None:
        lead = self._load_for_edit(session, actor_user, lead_id)
        deleted_id = lead.id
        session.delete(lead)
        events.publish(events.build_envelope(LEAD_DELETED, actor_user.user_id, {"lead_id": deleted_id}))
        session.commit()
        observe_lead_operation("delete", "success")
        logger.info("lead.deleted", extra={"lead_id": deleted_id, "user_id": actor_user.user_id})

    def add_note(
        self,
        session: Session,
        actor_user: ActorUser,
        lead_id: int,
        content: str,
        *,
        is_contact: bool = False,
    ) -> CRMLead:
        lead = self._load_for_edit(session, actor_user, lead_id)
        text = content.strip()
        if not text:
            raise InvalidArgumentError("note content must not be blank")

        self._append_activity(lead, actor_user, ActivityType.NOTE_ADDED, text, {"is_contact": is_contact})
        now = utcnow()
        if is_contact:
            lead.last_contacted_at = now
        lead.updated_at = now
        session.commit()
        observe_lead_operation("add_note", "success")
        return lead

    def _load_in_scope(self, session: Session, actor_user: ActorUser, lead_id: int) -> CRMLead:
        scope = resolve_scope(actor_user, Resource.LEADS, self.roster)
        lead = self.repository.get_in_scope(session, lead_id, scope)
        if lead is None:
            raise NotFoundError("lead not found", details={"lead_id": lead_id})
        return lead

    def _load_for_edit(self, session: Session, actor_user: ActorUser, lead_id: int) -> CRMLead:
        require(actor_user, Resource.LEADS, Action.EDIT)
        return self._load_in_scope(session, actor_user, lead_id)

    def _apply_assignment(self, lead: CRMLead, actor_user: ActorUser, target_user_id: str | None) -> None:
        previous = lead.assigned_to
        lead.assigned_to = target_user_id
        self._append_activity(
            lead,
            actor_user,
            ActivityType.ASSIGN,
            f"Assigned to {target_user_id}" if target_user_id else "Unassigned",
            {"from_user_id": previous, "to_user_id": target_user_id},
        )
        events.publish(
            events.build_envelope(
                LEAD_ASSIGNED,
                actor_user.user_id,
                {"lead_id": lead.id, "from_user_id": previous, "to_user_id": target_user_id},
            )
        )

    def _apply_stage(self, lead: CRMLead, actor_user: ActorUser, target: LeadStage) -> None:
        previous = lead.stage
        lead.stage = target.value
        self._append_activity(
            lead,
            actor_user,
            ActivityType.STAGE_CHANGED,
            f"Stage changed from {previous} to {target.value}",
            {"from_stage": previous, "to_stage": target.value},
        )
        events.publish(
            events.build_envelope(
                LEAD_STAGE_CHANGED,
                actor_user.user_id,
                {"lead_id": lead.id, "from_stage": previous, "to_stage": target.value},
            )
        )
        logger.info(
            "lead.stage_changed",
            extra={
                "lead_id": lead.id,
                "user_id": actor_user.user_id,
                "from_stage": previous,
                "to_stage": target.value,
            },
        )

    @staticmethod
    def _append_activity(
        lead: CRMLead,
        actor_user: ActorUser,
        activity_type: ActivityType,
        description: str,
        details: dict[str, Any],
    ) -> CRMLeadActivity:
        activity = CRMLeadActivity(
            activity_type=activity_type.value,
            actor_user_id=actor_user.user_id,
            description=description,
            details=details,
            occurred_at=utcnow(),
        )
        lead.activities.append(activity)
        return activity


lead_service = LeadService()
