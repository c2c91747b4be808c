"""Engine construction and session factories."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from realty.core.config import Settings, get_settings
from realty.obs import instrument_sqlalchemy_engine


def build_engine(settings: Settings) -> Engine:
    """Create the engine for ``settings.database_url``.

    SQLite connections are shared across the threadpool FastAPI runs sync
    routes on, so the same-thread check is disabled for them.
    """
    connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
    built = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
    if settings.enable_tracing:
        instrument_sqlalchemy_engine(built)
    return built


engine = build_engine(get_settings())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success and roll back on error; for scripts outside a request."""
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["SessionLocal", "build_engine", "engine", "session_scope"]
