from __future__ import annotations

import os
import tempfile
from typing import Any, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from smartspend import models
from smartspend.core import deps
from smartspend.core.database import Base, get_db
from smartspend.core.ratelimit import NoopRateLimiter
from smartspend.integrations.mailer import SendResult
from smartspend.main import app


class FakeNotifier:
    """Records outgoing mail; addresses in ``fail_for`` get a failed result."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for: set[str] = set()

    def send(self, to: str, subject: str, body: str) -> SendResult:
        if to in self.fail_for:
            return SendResult(success=False, error="mailbox unavailable")
        self.sent.append((to, subject, body))
        return SendResult(success=True)


class FakeExtractor:
    def __init__(self, result: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.result = result or {}
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    def extract(self, image: bytes, mime_type: str) -> dict[str, Any]:
        self.calls.append((image, mime_type))
        if self.error is not None:
            raise self.error
        return dict(self.result)


class FakeInsights:
    def __init__(self, insights: list[str] | None = None, error: Exception | None = None) -> None:
        self.insights = insights or []
        self.error = error

    def generate(self, stats: dict[str, Any]) -> list[str]:
        if self.error is not None:
            raise self.error
        return list(self.insights)


class RecordingInvalidator:
    def __init__(self) -> None:
        self.calls: list[tuple[int, list[int]]] = []

    def invalidate(self, user_id, account_ids) -> None:
        self.calls.append((user_id, sorted(set(account_ids))))


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # temporary file DB so the developer's db.sqlite3 is never touched
    fd, path = tempfile.mkstemp(prefix="smartspend_test_", suffix=".sqlite3")
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
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # seed: demo user (id 1)
    session.add(models.User(email="demo@example.com", name="Demo", is_active=True))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=ON")


@pytest.fixture()
def demo_user(db_session) -> models.User:
    return db_session.query(models.User).filter(models.User.email == "demo@example.com").one()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture(autouse=True)
def override_dependency(db_session, demo_user, notifier, extractor):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[deps.get_current_user] = lambda: demo_user
    app.dependency_overrides[deps.get_notifier] = lambda: notifier
    app.dependency_overrides[deps.get_receipt_extractor] = lambda: extractor
    app.dependency_overrides[deps.get_insight_generator] = lambda: None
    app.dependency_overrides[deps.get_rate_limiter] = NoopRateLimiter
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


def override_user(user: models.User) -> None:
    app.dependency_overrides[deps.get_current_user] = lambda: user


def override_now(now) -> None:
    app.dependency_overrides[deps.get_now] = lambda: now


def make_user(db_session, email: str, name: str | None = None) -> models.User:
    user = models.User(email=email, name=name, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user
