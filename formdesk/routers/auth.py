"""Session endpoints for the signed-in user."""

from fastapi import APIRouter, Depends, Response

from formdesk.core.deps import COOKIE_NAME, get_current_user, require_csrf_header
from formdesk.db.models import User
from formdesk.schemas.auth import UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=UserRead)
def get_me(user: User = Depends(get_current_user)):
    """Get current user info."""
    return UserRead(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
    )


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"message": "Logged out"}
