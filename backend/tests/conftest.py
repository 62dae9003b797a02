"""Pytest configuration and shared fixtures."""

import os

# Settings and the engine are created at import time
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from collections.abc import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from exambank.db.base import create_tables  # noqa: E402
from exambank.db.engine import engine  # noqa: E402
from exambank.db.session import get_db  # noqa: E402
from exambank.main import app  # noqa: E402
from exambank.models.question import TestSet  # noqa: E402
from tests.helpers.rows import SECTIONS  # noqa: E402

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session", autouse=True)
def _tables() -> None:
    create_tables(engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Test session inside an outer transaction that is rolled back afterwards.

    Application code may call ``commit()``; with ``create_savepoint`` that only
    releases a SAVEPOINT.
    """
    connection = engine.connect()
    trans = connection.begin()
    session = Session(bind=connection, expire_on_commit=False, join_transaction_mode="create_savepoint")
    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture
def exam_set(db: Session) -> TestSet:
    """A test set with two sections."""
    test_set = TestSet(name="SSC Mock 1", sections=[dict(s) for s in SECTIONS])
    db.add(test_set)
    db.commit()
    return test_set


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """TestClient whose requests share the test session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

