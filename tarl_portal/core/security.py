"""Session validation and route guards.

The session token is a signed JWT whose ``sub`` is the user id. Credential
checks happen upstream; this module only maps a token to a live principal
and asks the permission engine whether that principal may proceed.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from tarl_portal.core.config import Settings, get_settings, settings
from tarl_portal.core.exceptions import AuthenticationError, AuthorizationError
from tarl_portal.core.principal import Principal
from tarl_portal.db.session import get_db
from tarl_portal.models.user import User
from tarl_portal.services.permission_service import permission_service

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
    app_settings: Optional[Settings] = None,
) -> str:
    """Create a JWT access token."""
    app_settings = app_settings or settings
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=app_settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, app_settings.JWT_SECRET, algorithm=app_settings.JWT_ALGORITHM)


def decode_token(token: str, app_settings: Optional[Settings] = None) -> dict:
    """Decode and validate a JWT token."""
    app_settings = app_settings or settings
    try:
        return jwt.decode(token, app_settings.JWT_SECRET, algorithms=[app_settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def principal_for_user(user: User) -> Principal:
    return Principal(
        user_id=user.id,
        role=user.role.name,
        hierarchy_level=user.role.hierarchy_level,
        email=user.email,
    )


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_settings),
) -> Principal:
    """Resolve the bearer token to an active user's principal."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    payload = decode_token(credentials.credentials, app_settings)
    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthorizationError("Inactive user")
    principal = principal_for_user(user)
    request.state.principal = principal
    return principal


class RequireRole:
    """Dependency that checks the caller's role is at least as broad as ``max_level``."""

    def __init__(self, max_level: int):
        self.max_level = max_level

    async def __call__(self, principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.hierarchy_level > self.max_level:
            raise AuthorizationError(
                f"Role '{principal.role}' insufficient. Requires level {self.max_level} or broader."
            )
        return principal


class RequireAction:
    """Dependency that runs the action resolver before a handler executes."""

    def __init__(self, page_name: str, action: str = "view"):
        self.page_name = page_name
        self.action = action

    async def __call__(
        self,
        principal: Principal = Depends(get_current_principal),
        db: Session = Depends(get_db),
        app_settings: Settings = Depends(get_settings),
    ) -> Principal:
        allowed = permission_service.can_perform_action(
            db, principal.role, self.page_name, self.action, app_settings.LEGACY_ALLOWED_ROLES,
        )
        if not allowed:
            raise AuthorizationError(
                f"Role '{principal.role}' may not {self.action} on '{self.page_name}'"
            )
        return principal


# Convenience dependency factories
require_admin = RequireRole(0)
