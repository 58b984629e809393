"""Scoped, filtered and paginated lead listing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from vilead.crm.models import CRMLead
from vilead.crm.repositories import LeadRepository
from vilead.crm.search import fold_search_text
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import InvalidArgumentError
from vilead.platform.security.guard import can
from vilead.platform.security.policies import Action, Resource
from vilead.platform.security.scope import Denied, ScopeFilter, TeamRoster, resolve_scope


DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class LeadFilters:
    source: str | None = None
    region: str | None = None
    status: str | None = None
    stage: str | None = None
    assigned_to: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class LeadPage:
    items: list[CRMLead]
    total: int


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_lead_query(scope: ScopeFilter, filters: LeadFilters | None = None) -> Select[Any]:
    """Build the unpaged, unordered statement for ``scope`` AND every supplied filter."""

    filters = filters or LeadFilters()
    repository = LeadRepository()
    query = repository.apply_scope_query(repository.base_query(), scope)

    if filters.source:
        query = query.where(CRMLead.source == filters.source)
    if filters.region:
        query = query.where(CRMLead.region == filters.region)
    if filters.status:
        query = query.where(CRMLead.status == filters.status)
    if filters.stage:
        query = query.where(CRMLead.stage == filters.stage)
    if filters.assigned_to:
        query = query.where(CRMLead.assigned_to == filters.assigned_to)
    if filters.search:
        term = fold_search_text(filters.search)
        if term:
            pattern = f"%{_escape_like(term)}%"
            query = query.where(
                or_(
                    CRMLead.search_name.like(pattern, escape="\\"),
                    CRMLead.search_email.like(pattern, escape="\\"),
                    CRMLead.search_phone.like(pattern, escape="\\"),
                )
            )
    return query


def query_leads(
    session: Session,
    user: ActorUser,
    filters: LeadFilters | None = None,
    page: int = DEFAULT_PAGE,
    page_size: int = DEFAULT_PAGE_SIZE,
    roster: TeamRoster | None = None,
) -> LeadPage:
    if page <= 0:
        raise InvalidArgumentError("page must be a positive integer", details={"page": page})
    if page_size <= 0:
        raise InvalidArgumentError("page size must be a positive integer", details={"page_size": page_size})
    if not can(user, Resource.LEADS, Action.VIEW):
        return LeadPage(items=[], total=0)

    scope = resolve_scope(user, Resource.LEADS, roster)
    if isinstance(scope, Denied):
        return LeadPage(items=[], total=0)

    query = build_lead_query(scope, filters)
    total = session.scalar(select(func.count()).select_from(query.order_by(None).subquery())) or 0
    rows = session.scalars(
        query.order_by(CRMLead.created_at.desc(), CRMLead.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return LeadPage(items=list(rows), total=int(total))


def iter_scoped_leads(
    session: Session,
    user: ActorUser,
    filters: LeadFilters | None = None,
    roster: TeamRoster | None = None,
) -> list[CRMLead]:
    """Every lead visible to ``user`` under ``filters``, newest first, without paging."""

    if not can(user, Resource.LEADS, Action.VIEW):
        return []
    scope = resolve_scope(user, Resource.LEADS, roster)
    if isinstance(scope, Denied):
        return []
    query = build_lead_query(scope, filters).order_by(CRMLead.created_at.desc(), CRMLead.id.desc())
    return list(session.scalars(query).all())
