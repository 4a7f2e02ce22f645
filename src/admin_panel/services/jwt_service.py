"""
Bearer tokens for the resource API.

Tokens are HS256 JWTs whose claims become the UserContext that policies
and field visibility callbacks receive. The panel only verifies tokens;
issuing them is left to the host's login flow, which can reuse
create_access_token.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from pydantic import BaseModel, ValidationError

from admin_panel.core.config import JWT_ACCESS_TOKEN_EXPIRE_MINUTES, JWT_SECRET_KEY

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """Claims carried by a panel access token."""
    sub: str  # user id
    email: str
    name: str = ""
    roles: list[str] = []
    iat: Optional[int] = None
    exp: Optional[int] = None


class JWTService:
    """Encode and verify panel access tokens."""

    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    @classmethod
    def create_access_token(cls, payload: TokenPayload) -> str:
        issued_at = datetime.now(timezone.utc)
        claims = payload.model_dump(exclude={"iat", "exp"})
        claims["iat"] = issued_at
        claims["exp"] = issued_at + timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES)
        return jwt.encode(claims, JWT_SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def verify_token(cls, token: str) -> Optional[TokenPayload]:
        """
        Decode a token into its payload.

        Returns:
            None when the token is expired, malformed, signed with another
            key, or missing required claims
        """
        try:
            claims = jwt.decode(token, JWT_SECRET_KEY, algorithms=[cls.ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired access token")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected invalid access token: {e}")
            return None

        try:
            return TokenPayload(**claims)
        except ValidationError as e:
            logger.warning(f"Access token is missing required claims: {e}")
            return None


jwt_service = JWTService()
