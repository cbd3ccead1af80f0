from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from venue_reservations.core.errors import AuthError, ForbiddenError
from venue_reservations.core.security import decode_access_token
from venue_reservations.models import Role
from venue_reservations.schemas.reservation import ADMIN_ONLY_FIELDS
from venue_reservations.services.audit_service import AuditContext

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """
    Dependency resolving the caller from a Bearer JWT.
    The token carries ``sub`` (user id) and ``role`` (ADMIN or STAFF).
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthError("Invalid token", code="INVALID_TOKEN")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthError("Invalid token", code="INVALID_TOKEN")

    try:
        role = Role(str(payload.get("role", "")).upper())
    except ValueError:
        raise ForbiddenError("Role not allowed")

    return Identity(user_id=str(user_id), role=role)


def require_roles(*roles: Role):
    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in roles:
            raise ForbiddenError("Insufficient role", required=[r.value for r in roles])
        return identity

    return dependency


require_staff = require_roles(Role.STAFF, Role.ADMIN)
require_admin = require_roles(Role.ADMIN)


def audit_context(request: Request, identity: Optional[Identity] = None) -> AuditContext:
    return AuditContext(
        user_id=identity.user_id if identity else None,
        user_role=identity.role.value if identity else None,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def strip_admin_only_fields(data: dict[str, Any], identity: Identity) -> dict[str, Any]:
    """STAFF callers cannot set attribution owned by marketing."""
    if identity.is_admin:
        return data
    return {k: v for k, v in data.items() if k not in ADMIN_ONLY_FIELDS}
