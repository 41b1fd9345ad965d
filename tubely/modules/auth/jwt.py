"""JWT access tokens for API authentication."""

import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from tubely.core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # User ID
    exp: datetime
    iat: datetime
    type: str
    jti: str


def create_token(
    user_id: uuid.UUID,
    expires_delta: timedelta,
    token_type: str = ACCESS_TOKEN_TYPE,
    secret: str | None = None,
) -> str:
    """Create a signed JWT.

    Args:
        user_id: User UUID
        expires_delta: Token lifetime
        token_type: Token type claim
        secret: Signing secret (defaults to SECRET_KEY)

    Returns:
        str: The encoded token
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "exp": now + expires_delta,
        "iat": now,
        "type": token_type,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, secret or settings.SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(user_id: uuid.UUID, expires_minutes: int | None = None) -> str:
    """Create an access token for ``user_id``."""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    return create_token(user_id, timedelta(minutes=minutes))


def decode_token(token: str, secret: str | None = None) -> TokenPayload | None:
    """Decode and verify a JWT.

    Signature and ``exp`` are checked by python-jose.

    Returns:
        TokenPayload | None: Decoded payload if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, secret or settings.SECRET_KEY, algorithms=[ALGORITHM])
        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            type=payload["type"],
            jti=payload["jti"],
        )
    except (JWTError, KeyError, TypeError, ValueError):
        return None


def validate_token(
    token: str,
    expected_type: str = ACCESS_TOKEN_TYPE,
    secret: str | None = None,
) -> TokenPayload | None:
    """Validate a JWT and its type claim.

    Returns:
        TokenPayload | None: Decoded payload if valid, None otherwise
    """
    payload = decode_token(token, secret)
    if payload is None:
        return None
    if payload.type != expected_type:
        return None
    return payload


def get_user_id_from_token(token: str, secret: str | None = None) -> uuid.UUID | None:
    """Extract the user ID from a valid access token.

    Returns:
        uuid.UUID | None: User ID if the token is valid
    """
    payload = validate_token(token, ACCESS_TOKEN_TYPE, secret)
    if payload is None:
        return None

    try:
        return uuid.UUID(payload.sub)
    except ValueError:
        return None


# FastAPI dependencies
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> uuid.UUID:
    """Resolve the authenticated user from the ``Authorization: Bearer`` header.

    Reads headers only; the request body is untouched.

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise _unauthorized("Couldn't find JWT")

    user_id = get_user_id_from_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Couldn't validate JWT")

    return user_id
