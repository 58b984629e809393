from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from vilead.core.auth import TokenClaims, issue_token, verify_token
from vilead.core.config import get_settings


@pytest.fixture(autouse=True)
def configure_secret(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_round_trip_returns_identity() -> None:
    token = issue_token("sale_a1", "sale.a1@vilead.com", "sale")

    assert verify_token(token) == TokenClaims(user_id="sale_a1", email="sale.a1@vilead.com", role="sale")


def test_token_carries_standard_claims_and_default_ttl() -> None:
    token = issue_token("admin_1", "admin@vilead.com", "admin")
    claims = jwt.get_unverified_claims(token)

    assert claims["sub"] == "admin_1"
    assert claims["role"] == "admin"
    assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60


def test_tampered_payload_is_rejected() -> None:
    token = issue_token("sale_a1", "sale.a1@vilead.com", "sale")
    header, _, signature = token.split(".")
    forged_payload = jwt.encode(
        {"sub": "sale_a1", "email": "sale.a1@vilead.com", "role": "admin", "exp": 9999999999},
        "test-secret",
        algorithm="HS256",
    ).split(".")[1]

    assert verify_token(f"{header}.{forged_payload}.{signature}") is None


def test_token_signed_with_other_secret_is_rejected() -> None:
    forged = jwt.encode(
        {"sub": "sale_a1", "email": "sale.a1@vilead.com", "role": "admin", "exp": 9999999999},
        "not-the-secret",
        algorithm="HS256",
    )

    assert verify_token(forged) is None


def test_expired_token_is_rejected() -> None:
    token = issue_token("sale_a1", "sale.a1@vilead.com", "sale", ttl=timedelta(seconds=-10))

    assert verify_token(token) is None


def test_token_without_expiry_is_rejected() -> None:
    token = jwt.encode({"sub": "sale_a1", "email": "sale.a1@vilead.com", "role": "sale"}, "test-secret", algorithm="HS256")

    assert verify_token(token) is None


@pytest.mark.parametrize(
    "claims",
    [
        {"email": "a@vilead.com", "role": "sale"},
        {"sub": "sale_a1", "role": "sale"},
        {"sub": "sale_a1", "email": "a@vilead.com"},
        {"sub": "sale_a1", "email": "a@vilead.com", "role": 3},
        {"sub": "", "email": "a@vilead.com", "role": "sale"},
    ],
)
def test_missing_or_ill_typed_claims_are_rejected(claims: dict[str, object]) -> None:
    expires = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
    token = jwt.encode({**claims, "exp": expires}, "test-secret", algorithm="HS256")

    assert verify_token(token) is None


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_malformed_tokens_are_rejected(token: str) -> None:
    assert verify_token(token) is None
