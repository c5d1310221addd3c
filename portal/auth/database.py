"""
Client Files Portal - Database Engine and Sessions

One engine per application, created from DATABASE_URL:
- SQLite (development, tests): a single shared connection
- PostgreSQL (production): pooled connections with pre-ping

Request handlers get a session through the `get_db` dependency, which
draws from the factory stored on `app.state`.
"""

from typing import Callable, Generator, Optional

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from portal.config import settings


def get_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Engine for `database_url` (default DATABASE_URL)."""
    url = database_url or settings.DATABASE_URL

    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def init_db(engine: Engine) -> None:
    """Create any missing tables; existing tables are left untouched."""
    # Registers the tables on SQLModel.metadata
    from portal.auth import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session_factory(engine: Engine) -> Callable[[], Session]:
    """Sessions keep loaded attributes after commit so responses can read them."""
    def session_factory() -> Session:
        return Session(engine, expire_on_commit=False)

    return session_factory


def get_db(request: Request) -> Generator[Session, None, None]:
    """Per-request session, closed once the response is produced."""
    db = request.app.state.db_session_factory()
    try:
        yield db
    finally:
        db.close()
