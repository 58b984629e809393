from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vilead.core.auth import issue_token
from vilead.core.config import get_settings
from vilead.core.database import Base, get_db
from vilead.crm.models import CRMUser
from vilead.main import app
from vilead.middleware.rate_limit import reset_rate_limiter


USERS = {"admin_1": "admin", "leader_a": "leader", "sale_a1": "sale"}


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    for user_id, role in USERS.items():
        session.add(CRMUser(id=user_id, email=f"{user_id}@vilead.test", role=role))
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _as(user_id: str) -> dict[str, str]:
    token = issue_token(user_id, f"{user_id}@vilead.test", USERS[user_id])
    return {"Authorization": f"Bearer {token}"}


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.get("/api/leads/4242", headers={**_as("sale_a1"), "X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "app.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/leads/{id}"
        and getattr(record, "status_code", None) == 404
        and getattr(record, "user_id", None) == "sale_a1"
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_lead_logs_carry_correlation_id(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    created = client.post(
        "/api/leads",
        json={"name": "Log Lead"},
        headers={**_as("sale_a1"), "X-Correlation-Id": "lead-log-1"},
    )
    assert created.status_code == 201

    lead_records = [record for record in caplog.records if record.name == "app.crm.leads"]
    assert any(
        record.getMessage() == "lead.created"
        and getattr(record, "lead_id", None) == created.json()["id"]
        and getattr(record, "user_id", None) == "sale_a1"
        and getattr(record, "correlation_id", None) == "lead-log-1"
        for record in lead_records
    )


def test_permission_denial_is_logged(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.post(
        "/api/leads/assign",
        json={"leadIds": [1], "userId": "sale_a1"},
        headers=_as("sale_a1"),
    )
    assert response.status_code == 403

    assert any(
        record.name == "app.security"
        and getattr(record, "role", None) == "sale"
        and getattr(record, "action", None) == "assign"
        for record in caplog.records
    )
