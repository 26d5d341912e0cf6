"""User service - account bootstrap and session management."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from formdesk.db.enums import Role
from formdesk.db.models import User


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (case-insensitive)."""
    return db.scalar(select(User).where(User.email == email.strip().lower()))


def create_user(
    db: Session,
    email: str,
    first_name: str,
    last_name: str,
    role: str = Role.USER.value,
) -> User:
    """
    Create an active account.

    Raises:
        ValueError: unknown role, or the email is already registered
    """
    if not Role.has_value(role):
        raise ValueError(f"Unknown role: {role}")
    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise ValueError(f"User already exists: {email}")

    user = User(
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role,
        is_active=True,
        token_version=1,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def revoke_all_sessions(db: Session, user_id: UUID) -> bool:
    """
    Revoke all sessions for a user by bumping token_version.

    Existing tokens with old version will fail validation.

    Returns:
        True if user found and sessions revoked, False if user not found
    """
    user = db.get(User, user_id)
    if not user:
        return False

    user.token_version += 1
    db.commit()
    return True
