from __future__ import annotations

from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from vilead.crm.models import CRMLead, CRMUser
from vilead.platform.security.policies import Resource
from vilead.platform.security.repository import BaseRepository
from vilead.platform.security.scope import ScopeFilter


class LeadRepository(BaseRepository):
    resource = Resource.LEADS
    owner_columns = (CRMLead.assigned_to,)

    def base_query(self) -> Select[Any]:
        return select(CRMLead)

    def get_in_scope(self, session: Session, lead_id: int, scope: ScopeFilter) -> CRMLead | None:
        """Load a lead only if ``scope`` covers it; absent and hidden look the same."""

        query = self.apply_scope_query(select(CRMLead).where(CRMLead.id == lead_id), scope)
        return session.scalar(query)


def user_exists(session: Session, user_id: str) -> bool:
    return session.get(CRMUser, user_id) is not None
