"""Security utilities for JWT session tokens."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from formdesk.core.config import Settings


def create_session_token(
    user_id: UUID,
    role: str,
    token_version: int,
    settings: Settings,
) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    Token contains user identity, role, and revocation version.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "token_version": token_version,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str, settings: Settings) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error: jwt.InvalidTokenError | None = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore[misc]
