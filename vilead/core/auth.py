from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from starlette.requests import Request

from vilead.context import get_correlation_id
from vilead.core.config import get_settings
from vilead.platform.security.context import ActorUser
from vilead.platform.security.errors import AuthenticationError


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    role: str


def issue_token(user_id: str, email: str, role: str, *, ttl: timedelta | None = None) -> str:
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + (ttl if ttl is not None else timedelta(days=settings.token_ttl_days))
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenClaims | None:
    """Return the token's claims, or ``None`` for any signature, expiry or shape failure."""

    if not token:
        return None

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError:
        return None

    if not isinstance(payload, dict):
        return None
    subject = payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")
    if not all(isinstance(value, str) and value for value in (subject, email, role)):
        return None
    return TokenClaims(user_id=subject, email=email, role=role)


def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def get_current_user(request: Request) -> ActorUser:
    auth_header = request.headers.get("authorization")
    if not auth_header:
        raise AuthenticationError("No token provided")

    token = bearer_token(request)
    if not token:
        raise AuthenticationError("Invalid token format")

    claims = verify_token(token)
    if claims is None:
        raise AuthenticationError("Invalid token")

    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = claims.user_id

    return ActorUser(
        user_id=claims.user_id,
        email=claims.email,
        role=claims.role,
        correlation_id=get_correlation_id() or getattr(request.state, "correlation_id", None),
    )
