"""Pytest configuration for finance-api tests.

Ensures the service's own src directory takes precedence in sys.path and gives
every test its own SQLite database plus a pinned clock.
"""

import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterator

import pytest

SERVICES_ROOT = Path(__file__).resolve().parents[2]
SERVICE_SRC = Path(__file__).resolve().parents[1] / "src"
for path in (SERVICES_ROOT, SERVICE_SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

# Keep the module-level engine off disk; tests swap in their own sessions.
os.environ.setdefault("FINANCE_DB_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from persistence.database import build_engine, init_db  # noqa: E402
from persistence.models import User  # noqa: E402
from persistence.repository import UserRepository  # noqa: E402

FIXED_NOW = datetime(2025, 7, 15, 12, 0, 0)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def session_factory(tmp_path: Path) -> Iterator[sessionmaker]:
    engine = build_engine(f"sqlite:///{tmp_path / 'finance.db'}")
    init_db(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    def _make_user(email: str = "ana@example.com", monthly_budget: float = 0) -> User:
        users = UserRepository(db_session)
        user = users.create_user(email, "not-a-real-hash", "Ana")
        if monthly_budget:
            user = users.set_monthly_budget(user, monthly_budget)
        return user

    return _make_user


@pytest.fixture
def client(session_factory: sessionmaker, fixed_now: datetime) -> Iterator[TestClient]:
    from main import app, get_now
    from middleware.rate_limit import SimpleRateLimiter
    from persistence.database import get_session

    def _override_session() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    original_limiters = (app.state.rate_limiter, app.state.ai_rate_limiter)
    app.state.rate_limiter = SimpleRateLimiter(max_requests=1000, window_seconds=60)
    app.state.ai_rate_limiter = SimpleRateLimiter(max_requests=1000, window_seconds=60)
    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_now] = lambda: fixed_now
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.rate_limiter, app.state.ai_rate_limiter = original_limiters


@pytest.fixture
def register(client: TestClient) -> Callable[..., Dict[str, str]]:
    """Register an account and return its Authorization header."""

    def _register(email: str = "ana@example.com", password: str = "secret123") -> Dict[str, str]:
        response = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": "Ana"},
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register


@pytest.fixture
def auth_headers(register: Callable[..., Dict[str, str]]) -> Dict[str, str]:
    return register()
