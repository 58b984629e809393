from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    CRMError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from vilead.platform.security.guard import can, require
from vilead.platform.security.policies import (
    Action,
    CapabilitySet,
    Resource,
    ResourceCapability,
    Role,
    ViewScope,
    capabilities_for,
    normalize_role,
)
from vilead.platform.security.repository import BaseRepository
from vilead.platform.security.scope import (
    Denied,
    Owner,
    ScopeFilter,
    StaticTeamRoster,
    TeamMembers,
    TeamRoster,
    Unrestricted,
    get_team_roster,
    resolve_scope,
)

__all__ = [
    "ActorUser",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "CRMError",
    "InvalidArgumentError",
    "NotFoundError",
    "PermissionDeniedError",
    "can",
    "require",
    "Action",
    "CapabilitySet",
    "Resource",
    "ResourceCapability",
    "Role",
    "ViewScope",
    "capabilities_for",
    "normalize_role",
    "BaseRepository",
    "Denied",
    "Owner",
    "ScopeFilter",
    "StaticTeamRoster",
    "TeamMembers",
    "TeamRoster",
    "Unrestricted",
    "get_team_roster",
    "resolve_scope",
]
