"""Application context: settings plus the resources built from them.

One context is created per application instance and stored on
``app.state.context``. Request dependencies read it from there instead of
importing module-level engines or session factories.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from formdesk.core.config import Settings
from formdesk.db.session import build_engine, build_session_factory
from formdesk.services.file_store import FileStore


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    file_store: FileStore

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=build_session_factory(engine),
            file_store=FileStore(settings),
        )

    def create_all(self) -> None:
        """Create tables directly (development and tests; production uses Alembic)."""
        import formdesk.db.models  # noqa: F401
        from formdesk.db.base import Base

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_app_context(request: Request) -> AppContext:
    return request.app.state.context
