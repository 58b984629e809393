from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vilead import events
from vilead.core.auth import issue_token
from vilead.core.config import get_settings
from vilead.core.database import Base, get_db
from vilead.crm.models import CRMUser
from vilead.main import app
from vilead.middleware.correlation_id import clean_correlation_id
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
def clear_stubs() -> Generator[None, None, None]:
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()
    yield
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


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



def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get("/api/leads/4242", headers=_as("admin_1"))
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get("/api/leads/4242", headers={**_as("admin_1"), "X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.headers.get("x-request-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


@pytest.mark.parametrize("header", ["has spaces", "x" * 129, "<script>"])
def test_unsafe_correlation_id_is_replaced(client: TestClient, header: str) -> None:
    response = client.get("/api/leads/4242", headers={**_as("admin_1"), "X-Correlation-Id": header})

    assert response.status_code == 404
    returned = response.headers.get("x-correlation-id")
    assert returned
    assert returned != header
    assert response.json()["correlation_id"] == returned


def test_clean_correlation_id() -> None:
    assert clean_correlation_id(" req-1:a.b_c ") == "req-1:a.b_c"
    assert clean_correlation_id("x" * 128) == "x" * 128
    assert clean_correlation_id("x" * 129) is None
    assert clean_correlation_id("") is None
    assert clean_correlation_id(None) is None


def test_event_envelopes_include_correlation_id(client: TestClient) -> None:
    created = client.post(
        "/api/leads",
        json={"name": "Corr Lead"},
        headers={**_as("sale_a1"), "X-Correlation-Id": "corr-event-1"},
    )
    assert created.status_code == 201

    staged = client.put(
        f"/api/leads/{created.json()['id']}/stage",
        json={"stage": "consulting"},
        headers={**_as("sale_a1"), "X-Correlation-Id": "corr-event-2"},
    )
    assert staged.status_code == 200

    created_events = [item for item in events.published_events if item.get("event_type") == "crm.lead.created"]
    stage_events = [item for item in events.published_events if item.get("event_type") == "crm.lead.stage_changed"]
    assert created_events[-1].get("correlation_id") == "corr-event-1"
    assert stage_events[-1].get("correlation_id") == "corr-event-2"
    assert stage_events[-1]["payload"] == {
        "lead_id": created.json()["id"],
        "from_stage": "reception",
        "to_stage": "consulting",
    }


def test_rate_limited_response_includes_correlation_id(
    client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "false")
    monkeypatch.setenv("RATE_LIMIT_LEAD_MUTATIONS_PER_MINUTE", "1")
    get_settings.cache_clear()
    reset_rate_limiter()

    first = client.post(
        "/api/leads",
        json={"name": "Rate Limit Lead 1"},
        headers={**_as("sale_a1"), "X-Correlation-Id": "corr-rate-1"},
    )
    assert first.status_code == 201

    second = client.post(
        "/api/leads",
        json={"name": "Rate Limit Lead 2"},
        headers={**_as("sale_a1"), "X-Correlation-Id": "corr-rate-1"},
    )
    assert second.status_code == 429
    payload = second.json()
    assert payload["correlation_id"] == "corr-rate-1"
    assert second.headers.get("x-correlation-id") == "corr-rate-1"
