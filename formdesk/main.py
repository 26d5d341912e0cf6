"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from formdesk.core.config import Settings, settings as default_settings
from formdesk.core.context import AppContext
from formdesk.core.rate_limit import limiter
from formdesk.core.request_context import (
    REQUEST_ID_HEADER,
    get_request_id,
    reset_request_context,
    start_request_context,
)
from formdesk.core.structured_logging import build_log_context, configure_logging
from formdesk.routers import admin, auth, forms, submissions

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, context: AppContext | None = None) -> FastAPI:
    """
    Build the application.

    ``context`` may be supplied pre-built (tests share one with their
    fixtures); otherwise it is created from ``settings``.
    """
    settings = settings or (context.settings if context else default_settings)
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Formdesk API",
        description="Dynamic form builder: form design, submissions, and review",
        version=settings.VERSION,
        docs_url="/docs" if settings.ENV == "dev" else None,
        redoc_url="/redoc" if settings.ENV == "dev" else None,
    )
    app.state.context = context or AppContext.from_settings(settings)

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # Required for cookies
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "Content-Disposition"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        token = start_request_context(request.headers.get(REQUEST_ID_HEADER))
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "request_failed",
                    extra=build_log_context(route=request.url.path, method=request.method),
                )
                raise
            response.headers[REQUEST_ID_HEADER] = get_request_id() or ""
            return response
        finally:
            reset_request_context(token)

    app.include_router(auth.router)
    app.include_router(forms.router)
    app.include_router(submissions.router)
    app.include_router(admin.router)

    @app.get("/health")
    def health(request: Request):
        """
        Health check endpoint.

        Verifies database connectivity and returns environment info.
        """
        ctx: AppContext = request.app.state.context
        with ctx.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}

    return app


app = create_app()
