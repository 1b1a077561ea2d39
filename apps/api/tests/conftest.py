"""
Pytest configuration and fixtures

IMPORTANT: All tests use transactional rollback isolation.
Nothing created during tests persists to the database.
This prevents test data pollution completely.
"""
import os
import sys
from pathlib import Path
from uuid import uuid4

import pytest

# Settings are read at import time; tests run on an in-memory SQLite database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-energy-engine-0123456789")
os.environ.setdefault("ENGINE_TIMEZONE", "UTC")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """
    Build the test schema from the Alembic migrations, so the migrations and
    the models are exercised together.
    """
    try:
        from alembic import command
        from alembic.config import Config

        api_root = Path(__file__).resolve().parents[1]
        cfg = Config(str(api_root / "alembic.ini"))
        cfg.set_main_option("script_location", str(api_root / "alembic"))
        command.upgrade(cfg, "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e


from sqlalchemy.orm import Session  # noqa: E402
from core.database import engine, get_db  # noqa: E402
from core.security import create_access_token  # noqa: E402
from fixtures.energy_fixtures import THURSDAY  # noqa: E402


@pytest.fixture(scope="function")
def db_session():
    """
    Create a database session with transactional rollback.

    session.commit() and session.begin_nested() inside the code under test
    only ever touch savepoints; the outer transaction is rolled back after
    the test completes.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    # Rollback everything - nothing persists
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def now():
    return THURSDAY


@pytest.fixture
def client(db_session):
    """TestClient sharing the test session with the app."""
    from fastapi.testclient import TestClient
    from main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id):
    token = create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}
