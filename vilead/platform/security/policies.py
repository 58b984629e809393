"""Compiled role -> capability table.

Roles are fixed and the table is not configurable at runtime. Any role value
that is not one of the four known roles resolves to the ``sale`` capability
set, which is the most restrictive one.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any


logger = logging.getLogger("app.security")


class Role(StrEnum):
    ADMIN = "admin"
    CEO = "ceo"
    LEADER = "leader"
    SALE = "sale"


class Resource(StrEnum):
    DASHBOARD = "dashboard"
    LEADS = "leads"
    CUSTOMERS = "customers"
    ORDERS = "orders"
    PRODUCTS = "products"
    TASKS = "tasks"
    CALENDAR = "calendar"
    EMPLOYEES = "employees"
    KPIS = "kpis"
    MARKETING = "marketing"
    REPORTS = "reports"
    SETTINGS = "settings"


class Action(StrEnum):
    VIEW = "view"
    EDIT = "edit"
    ASSIGN = "assign"
    IMPORT_EXPORT = "import_export"
    MANAGE = "manage"


class ViewScope(StrEnum):
    NONE = "none"
    PERSONAL = "personal"
    TEAM = "team"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _SCOPE_RANK[self]

    def covers(self, other: ViewScope) -> bool:
        """Whether records visible under ``other`` are also visible under this scope."""

        return self.rank >= other.rank


_SCOPE_RANK = {
    ViewScope.NONE: 0,
    ViewScope.PERSONAL: 1,
    ViewScope.TEAM: 2,
    ViewScope.ALL: 3,
}


@dataclass(frozen=True, slots=True)
class ResourceCapability:
    view_scope: ViewScope = ViewScope.NONE
    edit: bool = False
    assign: bool = False
    import_export: bool = False
    manage: bool = False

    def allows(self, action: Action) -> bool:
        if action == Action.VIEW:
            return self.view_scope != ViewScope.NONE
        if action == Action.EDIT:
            return self.edit
        if action == Action.ASSIGN:
            return self.assign
        if action == Action.IMPORT_EXPORT:
            return self.import_export
        if action == Action.MANAGE:
            return self.manage
        return False

    def as_dict(self) -> dict[str, Any]:
        return {
            "view_scope": self.view_scope.value,
            "edit": self.edit,
            "assign": self.assign,
            "import_export": self.import_export,
            "manage": self.manage,
        }


_DENY_ALL = ResourceCapability()


@dataclass(frozen=True, slots=True)
class CapabilitySet:
    role: Role
    resources: Mapping[Resource, ResourceCapability] = field(default_factory=dict)

    def for_resource(self, resource: Resource | str) -> ResourceCapability:
        try:
            key = Resource(resource)
        except ValueError:
            return _DENY_ALL
        return self.resources.get(key, _DENY_ALL)

    def view_scope(self, resource: Resource | str) -> ViewScope:
        return self.for_resource(resource).view_scope

    def as_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "resources": {resource.value: self.for_resource(resource).as_dict() for resource in Resource},
        }


def _caps(**entries: ResourceCapability) -> Mapping[Resource, ResourceCapability]:
    return MappingProxyType({Resource(name): capability for name, capability in entries.items()})


ALL = ViewScope.ALL
TEAM = ViewScope.TEAM
PERSONAL = ViewScope.PERSONAL
NONE = ViewScope.NONE

ROLE_CAPABILITIES: Mapping[Role, CapabilitySet] = MappingProxyType(
    {
        Role.ADMIN: CapabilitySet(
            role=Role.ADMIN,
            resources=_caps(
                dashboard=ResourceCapability(ALL),
                leads=ResourceCapability(ALL, edit=True, assign=True, import_export=True),
                customers=ResourceCapability(ALL, edit=True, import_export=True),
                orders=ResourceCapability(ALL, edit=True),
                products=ResourceCapability(ALL, edit=True, import_export=True),
                tasks=ResourceCapability(ALL, edit=True),
                calendar=ResourceCapability(ALL),
                employees=ResourceCapability(ALL, edit=True, manage=True),
                kpis=ResourceCapability(ALL, edit=True),
                marketing=ResourceCapability(ALL, edit=True, manage=True),
                reports=ResourceCapability(ALL, edit=True, import_export=True),
                settings=ResourceCapability(ALL, edit=True, manage=True),
            ),
        ),
        Role.CEO: CapabilitySet(
            role=Role.CEO,
            resources=_caps(
                dashboard=ResourceCapability(ALL),
                leads=ResourceCapability(ALL, edit=True),
                customers=ResourceCapability(ALL, edit=True),
                orders=ResourceCapability(ALL),
                products=ResourceCapability(ALL),
                tasks=ResourceCapability(ALL, edit=True),
                calendar=ResourceCapability(ALL),
                employees=ResourceCapability(ALL),
                kpis=ResourceCapability(ALL),
                marketing=ResourceCapability(ALL),
                reports=ResourceCapability(ALL, edit=True),
                # company settings are readable, nothing else
                settings=ResourceCapability(ALL),
            ),
        ),
        Role.LEADER: CapabilitySet(
            role=Role.LEADER,
            resources=_caps(
                dashboard=ResourceCapability(TEAM),
                leads=ResourceCapability(TEAM, edit=True, assign=True),
                customers=ResourceCapability(TEAM, edit=True),
                orders=ResourceCapability(TEAM, edit=True),
                products=ResourceCapability(ALL),
                tasks=ResourceCapability(TEAM, edit=True),
                calendar=ResourceCapability(TEAM),
                employees=ResourceCapability(TEAM),
                kpis=ResourceCapability(TEAM),
                marketing=ResourceCapability(TEAM),
                reports=ResourceCapability(TEAM),
                settings=ResourceCapability(NONE),
            ),
        ),
        Role.SALE: CapabilitySet(
            role=Role.SALE,
            resources=_caps(
                dashboard=ResourceCapability(PERSONAL),
                leads=ResourceCapability(PERSONAL, edit=True),
                customers=ResourceCapability(PERSONAL, edit=True),
                orders=ResourceCapability(PERSONAL, edit=True),
                products=ResourceCapability(ALL),
                tasks=ResourceCapability(PERSONAL, edit=True),
                calendar=ResourceCapability(PERSONAL),
                employees=ResourceCapability(NONE),
                kpis=ResourceCapability(NONE),
                marketing=ResourceCapability(NONE),
                reports=ResourceCapability(PERSONAL),
                settings=ResourceCapability(NONE),
            ),
        ),
    }
)

FALLBACK_ROLE = Role.SALE


def normalize_role(role: str | None) -> Role:
    """Map a stored or token role onto a known role, failing closed to ``sale``."""

    if role is not None:
        try:
            return Role(str(role).strip().lower())
        except ValueError:
            pass
    logger.warning("policy.unknown_role", extra={"role": role})
    return FALLBACK_ROLE


def capabilities_for(role: str | None) -> CapabilitySet:
    return ROLE_CAPABILITIES[normalize_role(role)]
