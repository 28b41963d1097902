"""Authentication utilities for the Socia backend."""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings
from .errors import AuthorizationError
from .logging_config import log_auth_event

# Bearer token scheme; missing credentials are reported by get_current_user
security = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token for a user."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": user_id,
        "user_id": user_id,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def validate_token(token: str | None, settings: Settings) -> str:
    """Return the user id a token was issued for.

    Raises AuthorizationError for missing, expired or malformed tokens.
    """
    if not token:
        raise AuthorizationError("Missing token")
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise AuthorizationError(f"Invalid or expired token: {e}") from e

    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise AuthorizationError("Invalid token payload")
    return user_id


def decode_token(token: str, settings: Settings) -> str:
    """HTTP flavour of validate_token: failures become 401."""
    try:
        return validate_token(token, settings)
    except AuthorizationError as e:
        log_auth_event("token", "-", success=False, detail=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Get the authenticated user id from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_token(credentials.credentials, settings)


# Type alias for dependency injection
CurrentUser = Annotated[str, Depends(get_current_user)]
