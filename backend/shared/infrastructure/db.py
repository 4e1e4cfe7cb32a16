"""
Database configuration and session management.
Uses SQLAlchemy 2.0 engine/session patterns over a shared connection pool.
"""

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)


def _connect_args(url: str) -> dict[str, Any]:
    """
    Driver-level connection arguments.

    On PostgreSQL every statement carries the configured statement_timeout,
    so a runaway query is cancelled server-side and surfaces as a driver error.
    """
    if make_url(url).get_backend_name() != "postgresql":
        return {}

    options = f"-c statement_timeout={settings.db_statement_timeout_ms}"
    return {
        "connect_timeout": settings.db_connect_timeout,
        "application_name": settings.db_application_name,
        "options": options,
    }


def build_engine(url: str | None = None, **overrides: Any) -> Engine:
    """
    Create an engine with connection pooling and timeouts.

    Args:
        url: SQLAlchemy URL, defaults to settings.database_url
        **overrides: Extra create_engine keyword arguments (tests use poolclass)
    """
    url = url or settings.database_url
    kwargs: dict[str, Any] = {
        "pool_pre_ping": True,  # Verify connections before using
        "connect_args": _connect_args(url),
        "echo": settings.log_sql,
    }

    if make_url(url).get_backend_name() == "postgresql":
        kwargs.update(
            pool_size=settings.db_pool_min,
            max_overflow=max(settings.db_pool_max - settings.db_pool_min, 0),
            pool_timeout=30,  # Wait max 30s for connection from pool
            pool_recycle=settings.db_pool_recycle,
        )

    kwargs.update(overrides)
    return create_engine(url, **kwargs)


# Engine is created lazily by the driver on first connect
engine = build_engine()

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency-style session generator.

    The session is automatically closed after the caller is done with it.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db_context() as db:
            repo = ClientesRepository(db)
            repo.find_by_id(1)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Safe commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def health_check(db: Session) -> dict[str, Any]:
    """
    Round-trip a trivial query and report latency.

    Returns:
        {"status": "up", "latency_ms": ...} or {"status": "down", "error": ...}
    """
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database health check failed", exc_info=True)
        return {
            "status": "down",
            "error": str(exc),
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
        }

    return {
        "status": "up",
        "dialect": db.get_bind().dialect.name,
        "latency_ms": round((time.perf_counter() - start) * 1000, 2),
    }
