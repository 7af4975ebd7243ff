"""Database engine/session setup for SQLAlchemy."""

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from studio_agenda.core.config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite gets thread sharing and enforced foreign keys."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Required for SQLite with FastAPI; the busy timeout lets racing writers queue.
        connect_args = {"check_same_thread": False, "timeout": 15}

    new_engine = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
    )

    if database_url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


# Engine is shared across requests.
engine = build_engine(settings.database_url)

# Session factory used by request-scoped dependencies and the outbox worker.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=Session)

# Declarative base class for ORM models.
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Provide a DB session per request and ensure it is closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
