"""
Pytest configuration for backend tests.

Provides an isolated SQLite database per test run using a temporary file
(rather than in-memory) to support multiple connections and sessions.

Fixtures:
- db_engine (session scope): Creates the engine, builds the current-schema tables, and tears down.
- db_session (function scope): Provides a clean Session per test.
- adapter (function scope): Fresh SchemaAdapter with no resolved mapping.
- legacy_session (function scope): Session on a separate store using legacy column names.
"""

from __future__ import annotations

import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest


# Ensure the 'backend' directory is on sys.path so we can import app modules when running tests from repo root
CURRENT_DIR = Path(__file__).parent
BACKEND_ROOT = (CURRENT_DIR / "..").resolve()
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Test modules import customer_api at collection time, which builds the engine;
# point it at a throwaway file before that happens.
_DB_DIR = Path(tempfile.mkdtemp(prefix="customer-api-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{(_DB_DIR / 'test.db').as_posix()}"
os.environ.setdefault("SQLALCHEMY_ECHO", "0")


@pytest.fixture(scope="session")
def db_engine() -> "Generator":
    """
    File-based SQLite engine for the entire test session, built from the ORM
    models (current column names).
    """
    from customer_api.db.session import engine  # type: ignore
    from customer_api.db.base import Base, import_all_models  # type: ignore

    # Ensure models are imported and tables are created
    import_all_models()
    Base.metadata.create_all(bind=engine)

    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        shutil.rmtree(_DB_DIR, ignore_errors=True)


@pytest.fixture(scope="function")
def db_session(db_engine) -> "Generator":
    """
    Provide a fresh Session for each test function.
    Truncates tables before each test for isolation.
    """
    from customer_api.db.session import SessionLocal  # type: ignore
    from customer_api.db.base import Base  # type: ignore

    session = SessionLocal()

    # Truncate all tables before running the test (clean slate)
    try:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    except Exception:
        session.rollback()
        raise

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def adapter():
    from customer_api.repos.schema_adapter import SchemaAdapter  # type: ignore

    return SchemaAdapter("customers")


@pytest.fixture(scope="function")
def legacy_session(tmp_path) -> "Generator":
    """Session on a store with name/display_name, domain and created_date columns."""
    from sqlalchemy.orm import sessionmaker  # type: ignore

    from tests.fakes import make_legacy_store  # type: ignore

    engine = make_legacy_store(tmp_path / "legacy.db")
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        engine.dispose()
