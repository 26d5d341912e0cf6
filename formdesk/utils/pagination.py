"""Page/limit pagination for list endpoints."""

from dataclasses import dataclass

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass
class PaginationParams:
    """Pagination parameters from query string."""
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def page_count(self, total: int) -> int:
        return (total + self.per_page - 1) // self.per_page if total else 0


def get_pagination(
    page: int = Query(DEFAULT_PAGE, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description=f"Items per page (max {MAX_LIMIT})"),
) -> PaginationParams:
    """
    Pagination dependency.

    Usage:
        @router.get("/items")
        def list_items(pagination: PaginationParams = Depends(get_pagination)):
            ...
    """
    return PaginationParams(page=page, per_page=limit)


def paginate_select(db: Session, stmt: Select, pagination: PaginationParams) -> tuple[list, int]:
    """
    Run a select() for one page.

    The total is counted over the unpaginated statement with ordering removed.

    Returns:
        (items, total_count)
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = db.scalar(count_stmt) or 0
    items = list(db.scalars(stmt.offset(pagination.offset).limit(pagination.per_page)))
    return items, total
