from __future__ import annotations

import logging

from vilead.metrics import observe_authz_denied
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import PermissionDeniedError
from vilead.platform.security.policies import Action, Resource, capabilities_for


logger = logging.getLogger("app.security")


def can(user: ActorUser, resource: Resource | str, action: Action | str) -> bool:
    """Answer whether ``user``'s role grants ``action`` on ``resource``."""

    return capabilities_for(user.role).for_resource(resource).allows(Action(action))


def require(user: ActorUser, resource: Resource | str, action: Action | str) -> None:
    """Raise ``PermissionDeniedError`` unless the user's role grants the action."""

    capabilities = capabilities_for(user.role)
    requested = Action(action)
    if capabilities.for_resource(resource).allows(requested):
        return

    role = capabilities.role.value
    resource_name = str(resource)
    observe_authz_denied(resource=resource_name, action=requested.value, role=role)
    logger.info(
        "authz.denied",
        extra={"user_id": user.user_id, "role": role, "resource": resource_name, "action": requested.value},
    )
    raise PermissionDeniedError(role=role, resource=resource_name, action=requested.value)
