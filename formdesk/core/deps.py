"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from formdesk.core.config import Settings
from formdesk.core.context import AppContext, get_app_context
from formdesk.core.security import decode_session_token
from formdesk.db.models import User
from formdesk.services.file_store import FileStore


# Cookie and header names
COOKIE_NAME = "formdesk_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_settings(ctx: AppContext = Depends(get_app_context)) -> Settings:
    return ctx.settings


def get_file_store(ctx: AppContext = Depends(get_app_context)) -> FileStore:
    return ctx.file_store


def get_db(ctx: AppContext = Depends(get_app_context)) -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a session from the application's session factory and ensures
    it's closed after the request.
    """
    db = ctx.session_factory()
    try:
        yield db
    finally:
        db.close()


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def _resolve_user(token: str, db: Session, settings: Settings) -> User:
    try:
        payload = decode_session_token(token, settings)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.get(User, _parse_subject(payload.get("sub")))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return user


def _parse_subject(sub) -> UUID:
    try:
        return UUID(str(sub))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Get authenticated user from session cookie or bearer token.

    Validates:
    - Token exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return _resolve_user(token, db, settings)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User | None:
    """Authenticated user if a valid session is present, else None (anonymous)."""
    token = _extract_token(request)
    if not token:
        return None
    try:
        return _resolve_user(token, db, settings)
    except HTTPException:
        return None


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Reject non-admin users with 403."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )
