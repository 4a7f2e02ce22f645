# pyright: reportMissingTypeStubs=false
"""
Authentication dependencies for FastAPI.

Resolves the bearer token into a UserContext that resource policies and
field authorization callbacks receive as "the user".
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from admin_panel.services.jwt_service import jwt_service, TokenPayload

logger = logging.getLogger(__name__)


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(
        self,
        user_id: str,
        email: str,
        roles: list[str],
        name: str = "",
    ):
        self.user_id = user_id
        self.email = email
        self.roles = roles  # List of roles: ["admin"], ["editor"], etc.
        self.name = name

    @property
    def id(self) -> str:
        return self.user_id

    def has_role(self, role: str) -> bool:
        """Check if user has a specific role."""
        return role in self.roles or self.is_admin()

    def is_admin(self) -> bool:
        """Check if user is a panel administrator."""
        return "admin" in self.roles

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "UserContext":
        return cls(user_id=payload.sub, email=payload.email, roles=list(payload.roles), name=payload.name)

    def __repr__(self) -> str:
        return f"UserContext(user_id='{self.user_id}', email='{self.email}', roles={self.roles})"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None

    return jwt_service.verify_token(credentials.credentials)


def get_optional_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
) -> Optional[UserContext]:
    """Get the user context when a valid token is present, otherwise None."""
    if not payload:
        return None
    return UserContext.from_payload(payload)


def get_current_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    return UserContext.from_payload(payload)
