"""菜单管理服务测试：创建、更新、删除保护与批量排序。"""

import pytest

from app.packages.rbac.core.exceptions import ConflictError, InvariantViolationError, NotFoundError
from app.packages.rbac.crud.roles import role_crud
from app.packages.rbac.crud.users import user_menu_override_crud
from app.packages.rbac.models.menu import Menu
from app.packages.rbac.services.menu_service import menu_service


def _create(db, name, **fields):
    payload = {"name": name, "title": fields.pop("title", name), **fields}
    return menu_service.create(db, payload=payload)["data"]


def test_create_sets_level_from_parent(db_session_fixture):
    db = db_session_fixture
    parent = _create(db, "menu-parent")
    child = _create(db, "menu-child", parent_id=parent["id"], menu_type="button")

    assert parent["level"] == 1
    assert child["level"] == 2
    assert child["menu_type"] == "button"
    assert child["is_system"] is False


def test_create_validations(db_session_fixture):
    db = db_session_fixture
    _create(db, "menu-dup")

    with pytest.raises(ConflictError):
        _create(db, "menu-dup")
    with pytest.raises(NotFoundError):
        _create(db, "menu-no-parent", parent_id=999999)
    with pytest.raises(InvariantViolationError):
        _create(db, "menu-bad-type", menu_type="widget")
    with pytest.raises(InvariantViolationError):
        menu_service.create(db, payload={"name": "menu-no-title", "title": "  "})


def test_update_reparent_recomputes_levels(db_session_fixture):
    db = db_session_fixture
    a = _create(db, "menu-a")
    b = _create(db, "menu-b")
    c = _create(db, "menu-c", parent_id=b["id"])

    menu_service.update(db, menu_id=b["id"], payload={"parent_id": a["id"]})

    assert menu_service.get_detail(db, menu_id=b["id"])["data"]["level"] == 2
    assert menu_service.get_detail(db, menu_id=c["id"])["data"]["level"] == 3


def test_update_rejects_cycle(db_session_fixture):
    db = db_session_fixture
    a = _create(db, "menu-cycle-a")
    b = _create(db, "menu-cycle-b", parent_id=a["id"])

    with pytest.raises(InvariantViolationError):
        menu_service.update(db, menu_id=a["id"], payload={"parent_id": b["id"]})
    with pytest.raises(InvariantViolationError):
        menu_service.update(db, menu_id=a["id"], payload={"parent_id": a["id"]})


def test_system_menu_cannot_be_renamed_or_deleted(db_session_fixture):
    db = db_session_fixture
    dashboard = db.query(Menu).filter(Menu.name == "dashboard").one()

    with pytest.raises(InvariantViolationError) as renamed:
        menu_service.update(db, menu_id=dashboard.id, payload={"name": "home"})
    assert renamed.value.status_code == 403
    with pytest.raises(InvariantViolationError) as deleted:
        menu_service.delete(db, menu_id=dashboard.id)
    assert deleted.value.status_code == 403

    updated = menu_service.update(db, menu_id=dashboard.id, payload={"title": "首页"})["data"]
    assert updated["title"] == "首页"


def test_delete_blocked_by_children(db_session_fixture):
    db = db_session_fixture
    parent = _create(db, "menu-del-parent")
    _create(db, "menu-del-child", parent_id=parent["id"])

    with pytest.raises(InvariantViolationError):
        menu_service.delete(db, menu_id=parent["id"])


def test_delete_removes_grants_and_overrides(db_session_fixture, make_user):
    db = db_session_fixture
    menu = _create(db, "menu-del-grants")
    user = make_user("menu-del-user")
    role = role_crud.get_by_code(db, "user")
    role_crud.replace_menus(db, role.id, role_crud.list_menu_ids(db, role.id) + [menu["id"]])
    user_menu_override_crud.upsert(db, user.id, menu["id"], "grant")
    db.commit()

    result = menu_service.delete(db, menu_id=menu["id"])

    assert result["data"] == {"id": menu["id"]}
    assert menu["id"] not in role_crud.list_menu_ids(db, role.id)
    assert user_menu_override_crud.get_one(db, user.id, menu["id"]) is None
    with pytest.raises(NotFoundError):
        menu_service.get_detail(db, menu_id=menu["id"])


def test_batch_sort_moves_and_orders(db_session_fixture):
    db = db_session_fixture
    a = _create(db, "menu-sort-a")
    b = _create(db, "menu-sort-b")

    result = menu_service.batch_sort(
        db,
        items=[{"id": b["id"], "parent_id": a["id"], "sort_order": 3}, {"id": a["id"], "sort_order": 7}],
    )

    assert result["data"]["updated"] == 2
    moved = menu_service.get_detail(db, menu_id=b["id"])["data"]
    assert (moved["parent_id"], moved["sort_order"], moved["level"]) == (a["id"], 3, 2)
    assert menu_service.get_detail(db, menu_id=a["id"])["data"]["sort_order"] == 7


def test_batch_sort_rejects_cycle_without_changes(db_session_fixture):
    db = db_session_fixture
    a = _create(db, "menu-batch-a")
    b = _create(db, "menu-batch-b", parent_id=a["id"])

    with pytest.raises(InvariantViolationError):
        menu_service.batch_sort(
            db,
            items=[{"id": a["id"], "sort_order": 9}, {"id": a["id"], "parent_id": b["id"]}],
        )

    detail = menu_service.get_detail(db, menu_id=a["id"])["data"]
    assert detail["parent_id"] is None
    assert detail["sort_order"] == 0


def test_tree_includes_disabled_menus(db_session_fixture):
    db = db_session_fixture
    disabled = _create(db, "menu-tree-disabled", is_disabled=True)

    tree = menu_service.list_tree(db)["data"]

    assert disabled["id"] in {node["id"] for node in tree}
