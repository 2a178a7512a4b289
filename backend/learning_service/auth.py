"""Authentication helpers and FastAPI security dependency.

Tokens are issued by the sibling auth service; this module only verifies
them. `get_current_user_id` validates the bearer token (signature, expiry
and issuer) and returns the acting user id. `create_access_token` mints
tokens with the same claims for local tooling and tests.

Internal endpoints use a shared secret instead of a JWT, checked by
`is_internal_secret_valid`.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .errors import ApiError, INVALID_CREDENTIALS

TOKEN_ERROR_MESSAGE = "Token is not valid or has expired. Please log in again."

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized() -> ApiError:
    return ApiError(
        status_code=401,
        detail=TOKEN_ERROR_MESSAGE,
        error_type=INVALID_CREDENTIALS,
        headers={"WWW-Authenticate": f'Bearer realm="{settings.JWT_REALM}"'},
    )


def create_access_token(user_id: str, email: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    """Return a signed token for `user_id` with the configured issuer."""
    now = datetime.now(timezone.utc)
    minutes = settings.TOKEN_EXPIRATION_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        "iss": settings.JWT_ISSUER,
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises a 401 `ApiError` on
    failure. The subject claim must be present and non-blank.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            options={"require": ["exp", "iss", "sub"]},
        )
    except jwt.PyJWTError:
        raise _unauthorized()
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise _unauthorized()
    return payload


def user_id_from_payload(payload: dict) -> str:
    """Prefer an explicit `userId` claim, falling back to the subject."""
    claim = payload.get("userId")
    if isinstance(claim, str) and claim.strip():
        return claim
    return payload["sub"]


def get_current_user_id(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> str:
    """FastAPI dependency that returns the authenticated user id.

    Missing, malformed, expired or foreign-issuer tokens all produce the
    same 401 response.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized()
    payload = decode_token(credentials.credentials)
    return user_id_from_payload(payload)


def is_internal_secret_valid(provided: Optional[str]) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), settings.INTERNAL_SECRET.encode("utf-8"))
