from __future__ import annotations

from typing import Any, ClassVar

from sqlalchemy import ColumnElement, false, or_
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql import Select

from vilead.platform.security.policies import Resource
from vilead.platform.security.scope import Denied, Owner, ScopeFilter, TeamMembers, Unrestricted


class BaseRepository:
    """Applies a resolved scope to queries over one resource.

    Subclasses name the resource and the owner columns a scope is matched
    against. A record is in scope when any owner column matches.
    """

    resource: ClassVar[Resource]
    owner_columns: ClassVar[tuple[InstrumentedAttribute[Any], ...]] = ()

    def scope_predicate(self, scope: ScopeFilter) -> ColumnElement[bool] | None:
        if isinstance(scope, Unrestricted):
            return None
        if isinstance(scope, Denied) or not self.owner_columns:
            return false()
        if isinstance(scope, Owner):
            return or_(*[column == scope.user_id for column in self.owner_columns])
        if isinstance(scope, TeamMembers):
            members = sorted(scope.user_ids)
            if not members:
                return false()
            return or_(*[column.in_(members) for column in self.owner_columns])
        return false()

    def apply_scope_query(self, query: Select[Any], scope: ScopeFilter) -> Select[Any]:
        predicate = self.scope_predicate(scope)
        if predicate is None:
            return query
        return query.where(predicate)
