from __future__ import annotations

from collections.abc import Generator

import pytest

from vilead.core.config import get_settings
from vilead.platform.security import (
    ActorUser,
    Denied,
    Owner,
    Resource,
    StaticTeamRoster,
    TeamMembers,
    Unrestricted,
    get_team_roster,
    resolve_scope,
)


ROSTER = StaticTeamRoster(
    {
        "team_a": ["leader_a", "sale_a1", "sale_a2"],
        "team_b": ["leader_b", "sale_b1"],
    }
)


def _user(user_id: str, role: str) -> ActorUser:
    return ActorUser(user_id=user_id, email=f"{user_id}@vilead.test", role=role)


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_admin_and_ceo_resolve_to_unrestricted() -> None:
    assert isinstance(resolve_scope(_user("admin_1", "admin"), Resource.LEADS, ROSTER), Unrestricted)
    assert isinstance(resolve_scope(_user("ceo_1", "ceo"), Resource.LEADS, ROSTER), Unrestricted)


def test_leader_resolves_to_team_members_including_self() -> None:
    scope = resolve_scope(_user("leader_a", "leader"), Resource.LEADS, ROSTER)

    assert isinstance(scope, TeamMembers)
    assert scope.user_ids == frozenset({"leader_a", "sale_a1", "sale_a2"})


def test_leader_without_team_only_sees_self() -> None:
    scope = resolve_scope(_user("leader_z", "leader"), Resource.LEADS, ROSTER)

    assert isinstance(scope, TeamMembers)
    assert scope.user_ids == frozenset({"leader_z"})


def test_sale_resolves_to_owner() -> None:
    scope = resolve_scope(_user("sale_a1", "sale"), Resource.LEADS, ROSTER)

    assert scope == Owner(user_id="sale_a1")


def test_none_scope_resolves_to_denied() -> None:
    assert isinstance(resolve_scope(_user("sale_a1", "sale"), Resource.EMPLOYEES, ROSTER), Denied)
    assert isinstance(resolve_scope(_user("leader_a", "leader"), Resource.SETTINGS, ROSTER), Denied)


def test_unknown_role_resolves_like_sale() -> None:
    scope = resolve_scope(_user("someone", "superuser"), Resource.LEADS, ROSTER)

    assert scope == Owner(user_id="someone")


def test_resolution_is_deterministic() -> None:
    user = _user("leader_a", "leader")

    assert resolve_scope(user, Resource.LEADS, ROSTER) == resolve_scope(user, Resource.LEADS, ROSTER)


def test_default_roster_comes_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEAM_ROSTERS", '{"north": ["leader_n", "sale_n1"]}')
    get_settings.cache_clear()

    assert get_team_roster().members_of("sale_n1") == frozenset({"leader_n", "sale_n1"})
    scope = resolve_scope(_user("leader_n", "leader"), Resource.LEADS)
    assert scope == TeamMembers(user_ids=frozenset({"leader_n", "sale_n1"}))
