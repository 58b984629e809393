"""Login, current-user lookup and demo identities."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vilead.core.auth import issue_token
from vilead.core.config import get_settings
from vilead.crm.models import CRMUser
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import AuthenticationError, InvalidArgumentError, NotFoundError
from vilead.platform.security.policies import CapabilitySet, Role, capabilities_for


logger = logging.getLogger("app.security")


@dataclass(frozen=True)
class IssuedSession:
    token: str
    user: CRMUser


def user_id_for_email(email: str) -> str:
    return email.strip().lower().encode("utf-8").hex()


def check_credentials(user: CRMUser, password: str) -> bool:
    """Single place where a login password would be verified.

    No credential store exists yet, so every password is accepted.
    """

    logger.warning("auth.credential_check_skipped", extra={"user_id": user.id})
    return True


class IdentityService:
    def login(self, session: Session, email: str, password: str) -> IssuedSession:
        normalized = email.strip().lower()
        if not normalized:
            raise InvalidArgumentError("email is required")

        user = session.scalar(select(CRMUser).where(func.lower(CRMUser.email) == normalized))
        if user is None:
            user = session.get(CRMUser, user_id_for_email(normalized))
        if user is None:
            user = CRMUser(
                id=user_id_for_email(normalized),
                email=normalized,
                display_name=normalized.split("@", 1)[0],
                role=get_settings().default_user_role,
            )
            session.add(user)
            session.commit()
            logger.info("auth.user_created", extra={"user_id": user.id, "role": user.role})

        if not check_credentials(user, password):
            raise AuthenticationError("Invalid credentials")
        return IssuedSession(token=issue_token(user.id, user.email, user.role), user=user)

    def issue_demo_token(self, session: Session, role: Role) -> IssuedSession:
        user_id = f"demo_{role.value}"
        user = session.get(CRMUser, user_id)
        if user is None:
            user = CRMUser(
                id=user_id,
                email=f"{user_id}@demo.vilead.local",
                display_name=f"Demo {role.value}",
                role=role.value,
            )
            session.add(user)
            session.commit()
        logger.info("auth.demo_token_issued", extra={"user_id": user.id, "role": user.role})
        return IssuedSession(token=issue_token(user.id, user.email, user.role), user=user)

    def get_user(self, session: Session, actor_user: ActorUser) -> CRMUser:
        user = session.get(CRMUser, actor_user.user_id)
        if user is None:
            raise NotFoundError("user not found", details={"user_id": actor_user.user_id})
        return user

    def capabilities(self, actor_user: ActorUser) -> CapabilitySet:
        return capabilities_for(actor_user.role)


identity_service = IdentityService()
