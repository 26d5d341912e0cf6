"""Schemas for admin dashboard endpoints."""

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_users: int
    total_admins: int
    total_forms: int
    active_forms: int
    total_submissions: int
    recent_submissions: int
    recent_days: int
