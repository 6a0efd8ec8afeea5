"""
results_pipeline/rbac.py
Role-Based Access Control at the pipeline boundary

Tokens are minted by the external auth service; this module only verifies the
bearer JWT and turns its role claim into an Actor. Administrator operations
receive an explicit AdminCapability instead of reaching for a global client.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from results_pipeline.config import settings
from results_pipeline.errors import UnauthorizedError, ForbiddenError, ErrorCode

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.AUTH_TOKEN_URL, auto_error=False)


class ActorRole(str, Enum):
    admin = "admin"
    judge = "judge"
    student = "student"


@dataclass(frozen=True)
class Actor:
    """Verified caller identity taken from the token claims."""
    id: str
    role: ActorRole


@dataclass(frozen=True)
class AdminCapability:
    """
    Proof that the caller holds the administrator role.

    Passed into lifecycle and rubric operations; services refuse to run
    administrator steps without one.
    """
    actor_id: str


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a bearer JWT. Returns None when invalid or expired."""
    try:
        return jwt.decode(token, settings.get_jwt_secret(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def actor_from_claims(payload: dict) -> Actor:
    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or role not in ActorRole.__members__:
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)
    return Actor(id=str(subject), role=ActorRole(role))


async def get_current_actor(token: Optional[str] = Depends(oauth2_scheme)) -> Actor:
    """
    Get the authenticated actor from the bearer token.
    Raises 401 if the token is missing, invalid or expired.
    """
    if not token:
        raise UnauthorizedError()

    payload = decode_token(token)
    if not payload:
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)

    return actor_from_claims(payload)


def require_role(allowed_roles: List[ActorRole]):
    """
    Dependency factory: Require specific role(s).
    Usage: actor: Actor = Depends(require_role([ActorRole.judge, ActorRole.admin]))
    """
    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            logger.warning(
                f"Access denied: actor {actor.id} with role {actor.role.value} "
                f"attempted to access resource requiring {[r.value for r in allowed_roles]}"
            )
            raise ForbiddenError(
                f"This action requires one of: {[r.value for r in allowed_roles]}",
                details={"current_role": actor.role.value}
            )
        return actor
    return dependency


async def require_admin(
    actor: Actor = Depends(require_role([ActorRole.admin]))
) -> AdminCapability:
    return AdminCapability(actor_id=actor.id)


def ensure_admin(capability: Optional[AdminCapability]) -> AdminCapability:
    """Service-side guard for administrator operations."""
    if not isinstance(capability, AdminCapability):
        raise ForbiddenError("Administrator capability required")
    return capability
