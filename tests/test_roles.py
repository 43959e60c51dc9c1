"""角色服务测试：编码派生、系统角色保护与用户分配。"""

import pytest

from app.packages.rbac.core.exceptions import ConflictError, InvariantViolationError, NotFoundError
from app.packages.rbac.crud.roles import role_crud
from app.packages.rbac.models.menu import Menu
from app.packages.rbac.services.role_service import role_service


def _menu_id(db, name):
    return db.query(Menu).filter(Menu.name == name).one().id


def test_create_derives_code_with_underscore_suffix(db_session_fixture):
    db = db_session_fixture

    first = role_service.create(db, name="Ops Team")["data"]
    second = role_service.create(db, name="Ops-Team")["data"]

    assert first["code"] == "ops_team"
    assert second["code"] == "ops_team_1"
    assert second["sort_order"] == first["sort_order"] + 1
    assert first["is_system"] is False


def test_suggest_code_skips_taken_codes(db_session_fixture):
    db = db_session_fixture
    role_service.create(db, name="Auditor")

    assert role_service.suggest_code(db, name="Auditor")["data"]["code"] == "auditor_1"


def test_create_rejects_duplicates(db_session_fixture):
    db = db_session_fixture
    role_service.create(db, name="Support", code="support")

    with pytest.raises(ConflictError):
        role_service.create(db, name="Support")
    with pytest.raises(ConflictError):
        role_service.create(db, name="Support Two", code="Support")
    with pytest.raises(InvariantViolationError):
        role_service.create(db, name="   ")


def test_create_grants_menus(db_session_fixture):
    db = db_session_fixture
    dashboard = _menu_id(db, "dashboard")

    created = role_service.create(db, name="Viewer", menu_ids=[dashboard])["data"]

    assert created["menu_ids"] == [dashboard]
    with pytest.raises(NotFoundError):
        role_service.create(db, name="Broken", menu_ids=[999999])


def test_system_role_guards(db_session_fixture):
    db = db_session_fixture
    admin = role_crud.get_by_code(db, "admin")

    with pytest.raises(InvariantViolationError) as renamed:
        role_service.update(db, role_id=admin.id, payload={"name": "超级管理员"})
    assert renamed.value.status_code == 403

    with pytest.raises(InvariantViolationError) as recoded:
        role_service.update(db, role_id=admin.id, payload={"code": "root"})
    assert recoded.value.status_code == 403

    with pytest.raises(InvariantViolationError) as deleted:
        role_service.delete(db, role_id=admin.id)
    assert deleted.value.status_code == 403

    updated = role_service.update(db, role_id=admin.id, payload={"description": "内置"})["data"]
    assert updated["description"] == "内置"


def test_delete_role_in_use(db_session_fixture, make_user):
    db = db_session_fixture
    role = role_service.create(db, name="Temp Role")["data"]
    user = make_user("role-holder")
    role_service.add_users_to_role(db, role_id=role["id"], user_ids=[user.id])

    with pytest.raises(InvariantViolationError) as exc:
        role_service.delete(db, role_id=role["id"])
    assert exc.value.status_code == 400

    role_service.remove_user_from_role(db, role_id=role["id"], user_id=user.id)
    role_service.delete(db, role_id=role["id"])
    with pytest.raises(NotFoundError):
        role_service.get_detail(db, role_id=role["id"])


def test_set_role_menus_replaces_grants(db_session_fixture):
    db = db_session_fixture
    role = role_service.create(db, name="Menu Role", menu_ids=[_menu_id(db, "dashboard")])["data"]
    profile = _menu_id(db, "profile")

    result = role_service.set_role_menus(db, role_id=role["id"], menu_ids=[profile, profile])

    assert result["data"]["menu_ids"] == [profile]
    assert role_service.get_role_menus(db, role_id=role["id"])["data"]["menu_ids"] == [profile]


def test_user_roles_global_and_in_org(db_session_fixture, make_user):
    from app.packages.rbac.services.organization_service import organization_service

    db = db_session_fixture
    user = make_user("role-assign")
    org = organization_service.create(db, name="Role Org")["data"]
    role = role_service.create(db, name="Scoped")["data"]

    role_service.set_user_roles(db, user_id=user.id, role_ids=[role["id"]])
    role_service.set_user_roles_in_org(db, user_id=user.id, org_id=org["id"], role_ids=[role["id"]])

    global_roles = role_service.get_user_roles(db, user_id=user.id)["data"]
    org_roles = role_service.get_user_roles(db, user_id=user.id, org_id=org["id"])["data"]
    assert [item["id"] for item in global_roles] == [role["id"]]
    assert [item["id"] for item in org_roles] == [role["id"]]

    holders = role_service.list_role_users(db, role_id=role["id"])["data"]
    assert [item["id"] for item in holders] == [user.id]

    with pytest.raises(NotFoundError):
        role_service.set_user_roles(db, user_id=user.id, role_ids=[999999])
    with pytest.raises(NotFoundError):
        role_service.get_user_roles(db, user_id=user.id, org_id=999999)


def test_list_roles_with_keyword(db_session_fixture):
    db = db_session_fixture
    role_service.create(db, name="Keyword Alpha")
    role_service.create(db, name="Keyword Beta")

    payload = role_service.list_roles(db, keyword="Keyword", page=1, page_size=1)["data"]

    assert payload["total"] == 2
    assert len(payload["items"]) == 1
