from __future__ import annotations

import os
import tempfile
from typing import Generator, Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from fintrack.core.database import Base, get_db
from fintrack.main import app
from fintrack import models, schemas
from fintrack.services import AccountService


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # Temp-file SQLite so the developer database is never touched
    fd, path = tempfile.mkstemp(prefix="fintrack_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = create_engine(test_db_url, connect_args={"check_same_thread": False})

    @event.listens_for(eng, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # Every test starts from a clean database seeded with the demo user
    user = models.User(email="demo@example.com", is_active=True)
    session.add(user)
    session.flush()
    session.add(models.UserProfile(user_id=user.id, display_name="Demo", base_currency="INR"))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def demo_user(db_session) -> models.User:
    return db_session.query(models.User).filter(models.User.email == "demo@example.com").one()


@pytest.fixture()
def make_account(db_session, demo_user):
    def _make(name: str, opening_balance: float = 0, *, user: models.User | None = None, **kwargs) -> models.Account:
        owner = user or demo_user
        payload = schemas.AccountCreate(name=name, opening_balance=opening_balance, **kwargs)
        return AccountService(db_session).create(payload, user_id=owner.id)

    return _make
