"""Translate a role's view scope for a resource into a concrete record filter."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol, Union

from vilead.core.config import get_settings
from vilead.metrics import observe_scope_resolution
from vilead.platform.security.context import ActorUser
from vilead.platform.security.policies import Resource, ViewScope, capabilities_for


@dataclass(frozen=True, slots=True)
class Unrestricted:
    kind = "all"


@dataclass(frozen=True, slots=True)
class TeamMembers:
    user_ids: frozenset[str]
    kind = "team"


@dataclass(frozen=True, slots=True)
class Owner:
    user_id: str
    kind = "personal"


@dataclass(frozen=True, slots=True)
class Denied:
    kind = "none"


ScopeFilter = Union[Unrestricted, TeamMembers, Owner, Denied]


class TeamRoster(Protocol):
    def members_of(self, user_id: str) -> frozenset[str]:
        ...


class StaticTeamRoster:
    """Fixed team membership lists keyed by team name."""

    def __init__(self, teams: Mapping[str, Iterable[str]] | None = None) -> None:
        self._teams = {name: frozenset(members) for name, members in (teams or {}).items()}

    def members_of(self, user_id: str) -> frozenset[str]:
        members: set[str] = {user_id}
        for team_members in self._teams.values():
            if user_id in team_members:
                members.update(team_members)
        return frozenset(members)


def get_team_roster() -> TeamRoster:
    return StaticTeamRoster(get_settings().team_rosters)


def resolve_scope(user: ActorUser, resource: Resource | str, roster: TeamRoster | None = None) -> ScopeFilter:
    view_scope = capabilities_for(user.role).view_scope(resource)
    scope: ScopeFilter
    if view_scope == ViewScope.ALL:
        scope = Unrestricted()
    elif view_scope == ViewScope.TEAM:
        resolved_roster = roster if roster is not None else get_team_roster()
        scope = TeamMembers(user_ids=frozenset(resolved_roster.members_of(user.user_id)))
    elif view_scope == ViewScope.PERSONAL:
        scope = Owner(user_id=user.user_id)
    else:
        scope = Denied()

    observe_scope_resolution(resource=str(resource), scope=scope.kind)
    return scope
