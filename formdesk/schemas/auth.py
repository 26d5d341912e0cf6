"""Schemas for the authenticated user."""

from uuid import UUID

from pydantic import BaseModel, EmailStr

from formdesk.db.enums import Role


class UserRead(BaseModel):
    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    role: Role
    is_active: bool
