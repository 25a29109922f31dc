"""
ClipCast Authentication Module

Bearer token handling for the upload endpoints. Tokens are HS256 JWTs signed
with the configured secret key; the subject claim is the caller's user id.

- create_access_token: Issue a token for a user id
- validate_access_token: Verify signature and expiry, return the claims
- get_current_user_id: FastAPI dependency resolving the caller identity

Failures raise Unauthenticated, which the API layer renders as a 401 with a
WWW-Authenticate: Bearer header.

Usage:
    ```python
    from fastapi import Depends
    from app.core.auth import get_current_user_id

    @router.get("/protected")
    async def protected_route(user_id: str = Depends(get_current_user_id)):
        return {"user_id": user_id}
    ```
"""

import logging

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import Settings, get_settings
from app.core.exceptions import Unauthenticated


logger = logging.getLogger(__name__)


# Missing credentials are reported as Unauthenticated rather than FastAPI's 403
security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT bearer token whose subject is the caller's user id.",
    auto_error=False,
)


def create_access_token(user_id: str, settings: Settings) -> str:
    """
    Create a signed access token for the given user.

    Token claims:
    - sub: User ID (subject)
    - iat: Issued at timestamp
    - exp: Expiration timestamp (jwt_expiration_hours from now)
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def validate_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        Unauthenticated: If the token is expired, malformed, signed with
            another key, or has no subject.
    """
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as e:
        logger.warning("Bearer token has expired")
        raise Unauthenticated("Token has expired") from e
    except JWTError as e:
        logger.warning("Bearer token validation failed: %s", e)
        raise Unauthenticated("Invalid token") from e

    if not claims.get("sub"):
        raise Unauthenticated("Invalid token: missing user identifier")
    return claims


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Resolve the caller's user id from the Authorization header.

    Raises:
        Unauthenticated: If the header is absent or the token is invalid.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing bearer token")

    claims = validate_access_token(credentials.credentials, settings)
    return str(claims["sub"])
