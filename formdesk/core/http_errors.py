"""Translate service errors into HTTP responses."""

from fastapi import HTTPException

from formdesk.services.errors import (
    AccessDeniedError,
    FormServiceError,
    InvalidTransitionError,
    PersistenceFailureError,
    SchemaNotFoundError,
    SubmissionValidationError,
)


ACCESS_DENIED_STATUS = {
    AccessDeniedError.LOGIN_REQUIRED: 401,
    AccessDeniedError.NOT_YET_OPEN: 403,
    AccessDeniedError.CLOSED: 403,
    AccessDeniedError.FORBIDDEN: 403,
    AccessDeniedError.LIMIT_REACHED: 409,
    AccessDeniedError.ALREADY_SUBMITTED: 409,
}


def to_http_exception(exc: FormServiceError) -> HTTPException:
    if isinstance(exc, SchemaNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AccessDeniedError):
        return HTTPException(
            status_code=ACCESS_DENIED_STATUS.get(exc.reason, 403),
            detail={"message": str(exc), "reason": exc.reason},
        )
    if isinstance(exc, SubmissionValidationError):
        return HTTPException(
            status_code=400,
            detail={
                "message": str(exc),
                "errors": exc.errors,
                "field_errors": exc.field_errors,
            },
        )
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, PersistenceFailureError):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
