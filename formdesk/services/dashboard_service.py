"""Dashboard service - admin overview counts."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from formdesk.db.enums import Role
from formdesk.db.models import Form, FormSubmission, User


def get_dashboard_stats(
    db: Session,
    recent_days: int = 7,
    now: datetime | None = None,
) -> dict:
    """
    Counts for the admin dashboard.

    ``recent_submissions`` covers the last ``recent_days`` days up to ``now``.
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=recent_days)

    total_users = db.scalar(select(func.count(User.id))) or 0
    total_admins = (
        db.scalar(select(func.count(User.id)).where(User.role == Role.ADMIN.value)) or 0
    )
    total_forms = db.scalar(select(func.count(Form.id))) or 0
    active_forms = (
        db.scalar(select(func.count(Form.id)).where(Form.is_active.is_(True))) or 0
    )
    total_submissions = db.scalar(select(func.count(FormSubmission.id))) or 0
    recent_submissions = (
        db.scalar(
            select(func.count(FormSubmission.id)).where(FormSubmission.submitted_at >= since)
        )
        or 0
    )

    return {
        "total_users": total_users,
        "total_admins": total_admins,
        "total_forms": total_forms,
        "active_forms": active_forms,
        "total_submissions": total_submissions,
        "recent_submissions": recent_submissions,
        "recent_days": recent_days,
    }
