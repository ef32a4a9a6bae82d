"""
SQLAlchemy session setup with FastAPI-compatible dependency.

- engine: Synchronous engine (SQLite by default).
- SessionLocal: sessionmaker factory bound to the engine.
- get_db(): Yields a session per request and ensures it is closed.

Database URL resolution (priority):
1) Env var DATABASE_URL or DB_URL
2) customer_api.core.config.get_settings().db_url
"""

from __future__ import annotations

import os
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from customer_api.core.config import get_settings

__all__ = ["engine", "SessionLocal", "get_db", "make_engine", "DATABASE_URL", "SQLALCHEMY_ECHO"]

DATABASE_URL: str = os.getenv("DATABASE_URL") or os.getenv("DB_URL") or get_settings().db_url

SQLALCHEMY_ECHO: bool = os.getenv("SQLALCHEMY_ECHO", "0").lower() in {"1", "true", "yes", "on"}


def make_engine(url: str, *, echo: bool = False) -> Engine:
    """
    Create an engine for the customer store.

    SQLite gets check_same_thread=False (FastAPI runs sync routes in a thread
    pool) and enforced foreign keys; other backends get pool_pre_ping so a
    dropped serverless connection is replaced instead of failing the request.
    """
    if url.startswith("sqlite"):
        eng = create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

        @event.listens_for(eng, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # pragma: no cover
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA foreign_keys=ON")
            finally:
                cursor.close()

        return eng
    return create_engine(url, pool_pre_ping=True, echo=echo)


engine = make_engine(DATABASE_URL, echo=SQLALCHEMY_ECHO)

# expire_on_commit=False keeps loaded attributes usable after commit in request-scoped sessions
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    class_=Session,
)


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session and ensure it's closed afterwards.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
