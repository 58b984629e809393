from __future__ import annotations

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
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
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



def test_metrics_endpoint_exposes_http_and_lead_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    lead = client.post("/api/leads", json={"name": "Metrics Lead"}, headers=_as("sale_a1"))
    assert lead.status_code == 201
    denied = client.post(
        "/api/leads/assign",
        json={"leadIds": [lead.json()["id"]], "userId": "admin_1"},
        headers=_as("sale_a1"),
    )
    assert denied.status_code == 403

    metrics = client.get("/metrics", headers=_as("admin_1"))
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "lead_operations_total" in body
    assert "authz_denied_total" in body
    assert "scope_resolutions_total" in body

    assert 'path="/health"' in body
    assert 'operation="create"' in body
    assert 'action="assign"' in body


@pytest.mark.parametrize("user_id", ["leader_a", "sale_a1"])
def test_metrics_require_settings_management(client: TestClient, user_id: str) -> None:
    response = client.get("/metrics", headers=_as(user_id))

    assert response.status_code == 403
    assert response.json()["code"] == "metrics_read_failed"


def test_metrics_disabled_returns_not_found(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics", headers=_as("admin_1"))

    assert response.status_code == 404
