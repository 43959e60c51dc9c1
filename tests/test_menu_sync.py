"""菜单种子同步测试：幂等、同步模式与孤儿清理。"""

import pytest

from app.packages.rbac.core.exceptions import InvariantViolationError
from app.packages.rbac.db.menu_seed import MENU_TREE
from app.packages.rbac.models.menu import Menu
from app.packages.rbac.services.menu_service import serialize_menu
from app.packages.rbac.services import menu_sync_service
from app.packages.rbac.services.menu_sync_service import sync_menus, validate_seed
from app.packages.rbac.utils.tree import build_tree

SMALL_SEED = [
    {"name": "dashboard", "title": "Dashboard", "sort_order": 1},
    {
        "name": "settings",
        "title": "Settings",
        "sort_order": 2,
        "children": [{"name": "settings.users", "title": "Users", "sort_order": 1}],
    },
]


def _snapshot(db):
    return {
        menu.name: (menu.parent_id, menu.sort_order, menu.level, menu.title)
        for menu in db.query(Menu).order_by(Menu.id).all()
    }


def test_sync_builds_expected_tree(db_session_fixture):
    db = db_session_fixture
    summary = sync_menus(db, SMALL_SEED, remove_orphans=True)

    tree = build_tree(db.query(Menu).all(), serializer=serialize_menu)

    assert [node["name"] for node in tree] == ["dashboard", "settings"]
    settings = tree[1]
    assert [child["name"] for child in settings["children"]] == ["settings.users"]
    assert settings["children"][0]["level"] == 2
    assert summary["synced_count"] == 3
    assert summary["removed"] > 0


def test_sync_is_idempotent(db_session_fixture):
    """连续两次同步后菜单表完全一致，第二次不会新增记录。"""
    db = db_session_fixture
    sync_menus(db)
    first = _snapshot(db)

    summary = sync_menus(db)

    assert _snapshot(db) == first
    assert summary["created"] == 0


def test_seed_menus_present_after_startup(db_session_fixture):
    db = db_session_fixture
    names = {menu.name for menu in db.query(Menu).all()}

    assert {"dashboard", "admin", "system-menus", "errors-404"} <= names
    child = db.query(Menu).filter(Menu.name == "system-menus").one()
    parent = db.query(Menu).filter(Menu.name == "admin").one()
    assert child.parent_id == parent.id
    assert child.level == parent.level + 1


def test_force_mode_resets_manual_adjustments(db_session_fixture):
    db = db_session_fixture
    menu = db.query(Menu).filter(Menu.name == "system-menus").one()
    menu.parent_id = None
    menu.sort_order = 999
    db.commit()

    sync_menus(db, mode="force")
    db.refresh(menu)

    parent = db.query(Menu).filter(Menu.name == "admin").one()
    assert menu.parent_id == parent.id
    assert menu.sort_order != 999


def test_patch_mode_keeps_structure_but_refreshes_fields(db_session_fixture):
    db = db_session_fixture
    menu = db.query(Menu).filter(Menu.name == "system-menus").one()
    menu.parent_id = None
    menu.sort_order = 999
    menu.title = "改过的标题"
    db.commit()

    summary = sync_menus(db, mode="patch")
    db.refresh(menu)

    assert summary["mode"] == "patch"
    assert menu.parent_id is None
    assert menu.sort_order == 999
    assert menu.level == 1
    assert menu.title != "改过的标题"


def test_insert_only_mode_leaves_existing_rows(db_session_fixture):
    db = db_session_fixture
    menu = db.query(Menu).filter(Menu.name == "dashboard").one()
    menu.title = "自定义标题"
    db.commit()
    seed = SMALL_SEED + [{"name": "sync-insert-only", "title": "新增"}]

    summary = sync_menus(db, seed, mode="insert_only")
    db.refresh(menu)

    assert menu.title == "自定义标题"
    assert summary["created"] == 3
    assert summary["updated"] == 0
    assert db.query(Menu).filter(Menu.name == "sync-insert-only").count() == 1


def test_remove_orphans_deletes_menus_outside_seed(db_session_fixture):
    db = db_session_fixture
    db.add(Menu(name="sync-orphan", title="孤儿"))
    db.commit()

    sync_menus(db, remove_orphans=False)
    assert db.query(Menu).filter(Menu.name == "sync-orphan").count() == 1

    summary = sync_menus(db, remove_orphans=True)
    assert summary["removed"] == 1
    assert db.query(Menu).filter(Menu.name == "sync-orphan").count() == 0


def test_match_by_path_renames_existing_row(db_session_fixture):
    db = db_session_fixture
    db.add(Menu(name="legacy-reports", title="旧报表", path="/reports"))
    db.commit()
    legacy_id = db.query(Menu).filter(Menu.name == "legacy-reports").one().id

    sync_menus(db, [{"name": "reports", "title": "报表", "path": "/reports"}])

    renamed = db.query(Menu).filter(Menu.id == legacy_id).one()
    assert renamed.name == "reports"


def test_path_match_skips_rows_claimed_by_seed_name(db_session_fixture):
    """路径命中的记录若名称也在种子中，则留给同名节点，路径节点另行新增。"""
    db = db_session_fixture
    db.add(Menu(name="sync-old", title="旧", path="/sync-shared"))
    db.commit()
    old_id = db.query(Menu).filter(Menu.name == "sync-old").one().id
    seed = [
        {"name": "sync-new", "title": "新", "path": "/sync-shared", "sort_order": 1},
        {"name": "sync-old", "title": "旧", "sort_order": 2},
    ]

    summary = sync_menus(db, seed)

    assert summary["synced_count"] == 2
    assert summary["created"] == 1
    assert db.query(Menu).filter(Menu.name == "sync-old").one().id == old_id
    assert db.query(Menu).filter(Menu.name == "sync-new").count() == 1


def test_failure_midway_rolls_back_earlier_inserts(db_session_fixture, monkeypatch):
    db = db_session_fixture
    before = _snapshot(db)
    real_upsert = menu_sync_service._SyncRun.upsert
    calls = {"count": 0}

    def failing_upsert(self, node, parent_id, level):
        calls["count"] += 1
        if calls["count"] == 3:
            raise RuntimeError("store unavailable")
        return real_upsert(self, node, parent_id, level)

    monkeypatch.setattr(menu_sync_service._SyncRun, "upsert", failing_upsert)
    seed = [{"name": f"sync-atomic-{index}", "title": f"T{index}", "sort_order": index} for index in range(1, 5)]

    with pytest.raises(RuntimeError):
        sync_menus(db, seed)

    assert calls["count"] == 3
    assert _snapshot(db) == before
    assert db.query(Menu).filter(Menu.name.like("sync-atomic-%")).count() == 0


def test_auto_sort_for_nodes_without_order(db_session_fixture):
    db = db_session_fixture
    seed = [{"name": "sync-auto-a", "title": "A"}, {"name": "sync-auto-b", "title": "B"}]

    sync_menus(db, seed)

    a = db.query(Menu).filter(Menu.name == "sync-auto-a").one()
    b = db.query(Menu).filter(Menu.name == "sync-auto-b").one()
    assert a.sort_order < b.sort_order


def test_invalid_seed_is_rejected(db_session_fixture):
    db = db_session_fixture
    before = _snapshot(db)

    with pytest.raises(InvariantViolationError):
        sync_menus(db, [{"name": "sync-missing-title"}])
    with pytest.raises(InvariantViolationError):
        sync_menus(db, [{"name": "dup", "title": "A"}, {"name": "dup", "title": "B"}])
    with pytest.raises(InvariantViolationError):
        sync_menus(db, SMALL_SEED, mode="merge")

    assert _snapshot(db) == before


def test_builtin_seed_is_valid():
    nodes = validate_seed(MENU_TREE)

    assert {node.name for node in nodes} >= {"dashboard", "admin"}
