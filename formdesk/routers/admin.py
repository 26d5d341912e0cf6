"""Admin endpoints: dashboard counts and submission exports."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from formdesk.core.config import Settings
from formdesk.core.deps import get_db, get_settings, require_admin
from formdesk.db.models import User
from formdesk.schemas.admin import DashboardStats
from formdesk.services import dashboard_service, form_service, submission_export_service

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard", response_model=DashboardStats)
def get_dashboard(
    user: User = Depends(require_admin),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    stats = dashboard_service.get_dashboard_stats(
        db, recent_days=settings.RECENT_SUBMISSION_DAYS
    )
    return DashboardStats(**stats)


@router.get("/forms/{form_id}/submissions/export")
def export_form_submissions(
    form_id: UUID,
    format: str = Query("csv", description="csv or xlsx"),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    """Export every submission of a form (CSV or XLSX)."""
    form = form_service.get_form(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    try:
        export = submission_export_service.export_form_submissions(
            db, form, format.lower(), user_id=user.id
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    headers = {"Content-Disposition": f'attachment; filename="{export.filename}"'}
    return Response(content=export.content, media_type=export.media_type, headers=headers)
