from __future__ import annotations

import logging

import pytest

from vilead.platform.security import (
    Action,
    ActorUser,
    PermissionDeniedError,
    Resource,
    Role,
    ViewScope,
    can,
    capabilities_for,
    require,
)
from vilead.platform.security.policies import ROLE_CAPABILITIES


def _user(role: str, user_id: str = "user-1") -> ActorUser:
    return ActorUser(user_id=user_id, email=f"{user_id}@vilead.test", role=role)


@pytest.mark.parametrize("role", list(Role))
def test_every_role_defines_every_resource(role: Role) -> None:
    capabilities = capabilities_for(role.value)
    assert capabilities.role == role
    for resource in Resource:
        assert resource in capabilities.resources


def test_view_scope_ordering_is_total() -> None:
    ordered = [ViewScope.NONE, ViewScope.PERSONAL, ViewScope.TEAM, ViewScope.ALL]
    for index, scope in enumerate(ordered):
        for other in ordered[: index + 1]:
            assert scope.covers(other)
        for other in ordered[index + 1 :]:
            assert not scope.covers(other)


@pytest.mark.parametrize("resource", list(Resource))
def test_role_hierarchy_view_scopes_are_monotone(resource: Resource) -> None:
    admin = capabilities_for("admin").view_scope(resource)
    leader = capabilities_for("leader").view_scope(resource)
    sale = capabilities_for("sale").view_scope(resource)

    assert admin.covers(leader)
    assert leader.covers(sale)


def test_lead_capabilities_follow_permission_matrix() -> None:
    assert capabilities_for("admin").for_resource("leads").as_dict() == {
        "view_scope": "all",
        "edit": True,
        "assign": True,
        "import_export": True,
        "manage": False,
    }
    assert capabilities_for("ceo").for_resource(Resource.LEADS).assign is False
    assert capabilities_for("leader").view_scope(Resource.LEADS) == ViewScope.TEAM
    assert capabilities_for("leader").for_resource(Resource.LEADS).assign is True
    assert capabilities_for("sale").view_scope(Resource.LEADS) == ViewScope.PERSONAL
    assert capabilities_for("sale").for_resource(Resource.LEADS).import_export is False


@pytest.mark.parametrize("role", ["", "superuser", "ADMIN ", None, "sales"])
def test_unknown_role_falls_back_to_sale_capabilities(role: str | None, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="app.security")
    capabilities = capabilities_for(role)

    if role == "ADMIN ":
        assert capabilities is ROLE_CAPABILITIES[Role.ADMIN]
        return
    assert capabilities is ROLE_CAPABILITIES[Role.SALE]
    assert any(record.getMessage() == "policy.unknown_role" for record in caplog.records)


def test_unknown_resource_is_denied() -> None:
    capabilities = capabilities_for("admin")
    assert capabilities.view_scope("invoices") == ViewScope.NONE
    assert can(_user("admin"), "invoices", Action.VIEW) is False


def test_can_view_only_when_scope_is_not_none() -> None:
    sale = _user("sale")
    assert can(sale, Resource.LEADS, Action.VIEW) is True
    assert can(sale, Resource.EMPLOYEES, Action.VIEW) is False
    assert can(sale, Resource.SETTINGS, "view") is False
    assert can(_user("ceo"), Resource.SETTINGS, "view") is True
    assert can(_user("ceo"), Resource.SETTINGS, "manage") is False
    assert can(_user("admin"), Resource.SETTINGS, "manage") is True


def test_require_raises_readable_permission_denied() -> None:
    with pytest.raises(PermissionDeniedError) as exc_info:
        require(_user("sale"), Resource.LEADS, Action.ASSIGN)

    assert exc_info.value.message == "role 'sale' is not allowed to assign leads"
    assert exc_info.value.status_code == 403
    assert exc_info.value.kind == "permission_denied"


def test_require_reports_import_export_action() -> None:
    with pytest.raises(PermissionDeniedError) as exc_info:
        require(_user("leader"), "leads", "import_export")

    assert exc_info.value.message == "role 'leader' is not allowed to import/export leads"


def test_require_passes_for_granted_action() -> None:
    require(_user("leader"), Resource.LEADS, Action.ASSIGN)
    require(_user("sale"), Resource.LEADS, Action.EDIT)
