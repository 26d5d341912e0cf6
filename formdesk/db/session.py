from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for the configured database URL."""
    url = make_url(database_url)
    backend = url.get_backend_name()
    connect_args: dict = {}
    kwargs: dict = {}
    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
        kwargs["pool_pre_ping"] = True
    elif backend == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database in (None, "", ":memory:"):
            # One shared connection so every session sees the same in-memory DB.
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
