"""
Database session management for the Runscope backend.

Uses SQLAlchemy 2.x style `Session` and declarative models. Provides a
session factory and dependency helper for use with FastAPI. A simple
context manager is provided to get a session in synchronous code such
as the radar scheduler thread.
"""

from __future__ import annotations

import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from .config import settings


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite pools do not accept sizing arguments.
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": _env_int("DB_POOL_SIZE", 5),
        "max_overflow": _env_int("DB_MAX_OVERFLOW", 10),
        "pool_recycle": _env_int("DB_POOL_RECYCLE_SEC", 1800),
        "pool_timeout": _env_int("DB_POOL_TIMEOUT_SEC", 30),
    }


# Create SQLAlchemy engine
engine = create_engine(
    settings.database_url,
    echo=False,
    future=True,
    **_engine_kwargs(settings.database_url),
)


if settings.database_url.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _sqlite_foreign_keys(dbapi_conn, _record) -> None:
        # Radar deletion relies on ON DELETE CASCADE for its results.
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


# Create a configured session factory
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    """Yield a database session for FastAPI dependencies."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class SessionContext:
    """Context manager for database sessions outside of FastAPI."""

    def __enter__(self):
        self.db = SessionLocal()
        return self.db

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.db.close()
