"""
Engine / session plumbing shared by the routers and the maintenance scripts.
"""

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import Settings


def build_engine(settings: Settings) -> Engine:
    """Create the SQLAlchemy engine described by ``settings``."""
    if settings.is_sqlite:
        # Sync endpoints run in a threadpool, so connections cross threads.
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def dialect_insert(db: Session):
    """Return the ``insert`` construct supporting ON CONFLICT for this session's backend."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


# ── Dependency ───────────────────────────────────────────────────

def get_db(request: Request):
    """Yield a session from the factory built by ``create_app``."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
