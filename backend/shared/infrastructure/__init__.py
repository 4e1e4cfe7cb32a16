"""
Infrastructure module: Database engine and sessions.

Provides:
- Engine, session factory and commit helpers (db.py)
"""

from shared.infrastructure.db import (
    build_engine,
    engine,
    SessionLocal,
    get_db,
    get_db_context,
    safe_commit,
    health_check,
)

__all__ = [
    "build_engine",
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "safe_commit",
    "health_check",
]
