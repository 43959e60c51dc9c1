"""组织服务测试：编码派生与重试、防环校验、批量调整与成员归属。"""

import pytest

from app.packages.rbac.core.exceptions import ConflictError, InvariantViolationError, NotFoundError
from app.packages.rbac.crud.organizations import user_organization_crud
from app.packages.rbac.crud.roles import role_crud
from app.packages.rbac.models.organization import Organization
from app.packages.rbac.services.organization_service import organization_service
from app.packages.rbac.utils import codes
from app.packages.rbac.utils.codes import insert_with_unique_code, slugify_code


def _create(db, name, **kwargs):
    return organization_service.create(db, name=name, **kwargs)["data"]


def test_slugify_code():
    assert slugify_code("Research & Development") == "research-development"
    assert slugify_code("  Sales  ") == "sales"
    assert slugify_code("Ops Team", separator="_", prefix="role") == "ops_team"


def test_slugify_code_falls_back_when_name_has_no_ascii():
    code = slugify_code("研发部", prefix="org")

    assert code.startswith("org_")
    assert len(code.split("_")) == 3


def test_create_derives_code_and_suffixes_duplicates(db_session_fixture):
    db = db_session_fixture

    first = _create(db, "Acme Group")
    second = _create(db, "Acme Group")
    third = _create(db, "Acme Group")

    assert first["code"] == "acme-group"
    assert second["code"] == "acme-group-1"
    assert third["code"] == "acme-group-2"


def test_create_with_explicit_code_is_suffixed_when_taken(db_session_fixture):
    db = db_session_fixture
    _create(db, "Finance", code="fin")

    created = _create(db, "Finance West", code="fin")

    assert created["code"] == "fin-1"


def test_create_retries_after_insert_collision(db_session_fixture, monkeypatch):
    """预检查失效（并发写入）时，唯一约束冲突后自动换用下一个后缀。"""
    db = db_session_fixture
    _create(db, "Race")
    monkeypatch.setattr(codes, "is_code_taken", lambda *args, **kwargs: False)

    created = _create(db, "Race")

    assert created["code"] == "race-1"
    assert db.query(Organization).filter(Organization.name == "Race").count() == 2


def test_insert_gives_up_after_max_attempts(db_session_fixture, monkeypatch):
    db = db_session_fixture
    _create(db, "Busy")
    monkeypatch.setattr(codes, "is_code_taken", lambda *args, **kwargs: False)

    with pytest.raises(ConflictError):
        insert_with_unique_code(
            db,
            Organization,
            "busy",
            lambda code: Organization(name="Busy 2", code=code),
            max_attempts=1,
        )
    assert db.query(Organization).filter(Organization.name == "Busy 2").count() == 0


def test_create_with_missing_parent(db_session_fixture):
    with pytest.raises(NotFoundError):
        _create(db_session_fixture, "Orphan", parent_id=999999)


def test_tree_nests_children(db_session_fixture):
    db = db_session_fixture
    root = _create(db, "Tree Root")
    child = _create(db, "Tree Child", parent_id=root["id"])

    tree = organization_service.list_tree(db)["data"]

    node = next(item for item in tree if item["id"] == root["id"])
    assert [item["id"] for item in node["children"]] == [child["id"]]


def test_update_rejects_cycle(db_session_fixture):
    """A→B→C：把 A 挂到 C 下应被拒绝，结构保持不变。"""
    db = db_session_fixture
    a = _create(db, "Cycle A")
    b = _create(db, "Cycle B", parent_id=a["id"])
    c = _create(db, "Cycle C", parent_id=b["id"])

    with pytest.raises(InvariantViolationError):
        organization_service.update(db, org_id=a["id"], payload={"parent_id": c["id"]})
    with pytest.raises(InvariantViolationError):
        organization_service.move(db, org_id=a["id"], parent_id=a["id"])

    assert organization_service.get_detail(db, org_id=a["id"])["data"]["parent_id"] is None


def test_update_code_conflict(db_session_fixture):
    db = db_session_fixture
    _create(db, "Code One")
    two = _create(db, "Code Two")

    with pytest.raises(ConflictError):
        organization_service.update(db, org_id=two["id"], payload={"code": "code-one"})
    with pytest.raises(InvariantViolationError):
        organization_service.update(db, org_id=two["id"], payload={})


def test_move_to_root(db_session_fixture):
    db = db_session_fixture
    parent = _create(db, "Move Parent")
    child = _create(db, "Move Child", parent_id=parent["id"])

    moved = organization_service.move(db, org_id=child["id"], parent_id=None)["data"]

    assert moved["parent_id"] is None


def test_batch_reparent_is_all_or_nothing(db_session_fixture):
    db = db_session_fixture
    a = _create(db, "Batch A")
    b = _create(db, "Batch B", parent_id=a["id"])
    c = _create(db, "Batch C")

    with pytest.raises(InvariantViolationError):
        organization_service.batch_reparent(
            db,
            items=[
                {"id": c["id"], "parent_id": a["id"], "sort_order": 5},
                {"id": a["id"], "parent_id": b["id"]},
            ],
        )
    assert organization_service.get_detail(db, org_id=c["id"])["data"]["parent_id"] is None

    result = organization_service.batch_reparent(
        db,
        items=[{"id": c["id"], "parent_id": a["id"], "sort_order": 5}, {"id": b["id"], "parent_id": None}],
    )
    assert result["data"]["updated"] == 2
    detail = organization_service.get_detail(db, org_id=c["id"])["data"]
    assert detail["parent_id"] == a["id"]
    assert detail["sort_order"] == 5


def test_batch_reparent_validates_input(db_session_fixture):
    db = db_session_fixture
    org = _create(db, "Batch Input")

    with pytest.raises(InvariantViolationError):
        organization_service.batch_reparent(db, items=[])
    with pytest.raises(NotFoundError):
        organization_service.batch_reparent(db, items=[{"id": 999999, "parent_id": None}])
    with pytest.raises(NotFoundError):
        organization_service.batch_reparent(db, items=[{"id": org["id"], "parent_id": 999999}])


def test_delete_blocked_by_children(db_session_fixture):
    db = db_session_fixture
    parent = _create(db, "Delete Parent")
    child = _create(db, "Delete Child", parent_id=parent["id"])

    with pytest.raises(InvariantViolationError):
        organization_service.delete(db, org_id=parent["id"])

    organization_service.delete(db, org_id=child["id"])
    organization_service.delete(db, org_id=parent["id"])
    with pytest.raises(NotFoundError):
        organization_service.get_detail(db, org_id=parent["id"])


def _member_ids(db, org_id, **kwargs):
    return [item["id"] for item in organization_service.list_members(db, org_id=org_id, **kwargs)["data"]["items"]]


def test_add_members_skips_existing_and_rejects_unknown(db_session_fixture, make_user):
    db = db_session_fixture
    org = _create(db, "Member Org")
    first = make_user("org-member-1")
    second = make_user("org-member-2")

    added = organization_service.add_members(db, org_id=org["id"], user_ids=[first.id, second.id])["data"]
    again = organization_service.add_members(db, org_id=org["id"], user_ids=[first.id])["data"]

    assert added["added"] == sorted([first.id, second.id])
    assert again["added"] == []
    with pytest.raises(NotFoundError):
        organization_service.add_members(db, org_id=org["id"], user_ids=[first.id, 999999])
    with pytest.raises(InvariantViolationError):
        organization_service.add_members(db, org_id=org["id"], user_ids=[])
    with pytest.raises(NotFoundError):
        organization_service.add_members(db, org_id=999999, user_ids=[first.id])
    assert _member_ids(db, org["id"]) == sorted([first.id, second.id])


def test_set_primary_keeps_a_single_primary(db_session_fixture, make_user):
    """设置主组织时自动加入该组织，且同一用户只保留一个主组织。"""
    db = db_session_fixture
    org_a = _create(db, "Primary A")
    org_b = _create(db, "Primary B")
    user = make_user("org-primary")

    organization_service.set_primary(db, org_id=org_a["id"], user_id=user.id)
    organization_service.set_primary(db, org_id=org_b["id"], user_id=user.id)

    listed = organization_service.list_user_organizations(db, user_id=user.id)["data"]
    assert [(item["org_id"], item["is_primary"]) for item in listed] == [(org_b["id"], True), (org_a["id"], False)]
    assert listed[0]["org_code"] == "primary-b"
    assert user_organization_crud.get_primary_org_id(db, user.id) == org_b["id"]


def test_primary_org_falls_back_to_first_membership(db_session_fixture, make_user):
    db = db_session_fixture
    org_a = _create(db, "Fallback A")
    org_b = _create(db, "Fallback B")
    user = make_user("org-fallback")

    assert user_organization_crud.get_primary_org_id(db, user.id) is None
    organization_service.add_members(db, org_id=org_b["id"], user_ids=[user.id])
    organization_service.add_members(db, org_id=org_a["id"], user_ids=[user.id])

    assert user_organization_crud.get_primary_org_id(db, user.id) == org_a["id"]


def test_remove_member_refuses_primary(db_session_fixture, make_user):
    db = db_session_fixture
    org_a = _create(db, "Remove A")
    org_b = _create(db, "Remove B")
    user = make_user("org-remove")
    organization_service.add_members(db, org_id=org_a["id"], user_ids=[user.id])
    organization_service.set_primary(db, org_id=org_b["id"], user_id=user.id)

    with pytest.raises(InvariantViolationError):
        organization_service.remove_member(db, org_id=org_b["id"], user_id=user.id)

    organization_service.remove_member(db, org_id=org_a["id"], user_id=user.id)
    with pytest.raises(NotFoundError):
        organization_service.remove_member(db, org_id=org_a["id"], user_id=user.id)
    assert _member_ids(db, org_b["id"]) == [user.id]


def test_move_member_switches_primary(db_session_fixture, make_user):
    db = db_session_fixture
    source = _create(db, "Move From")
    target = _create(db, "Move To")
    user = make_user("org-mover")
    organization_service.set_primary(db, org_id=source["id"], user_id=user.id)

    organization_service.move_member(db, from_org_id=source["id"], to_org_id=target["id"], user_id=user.id)

    listed = organization_service.list_user_organizations(db, user_id=user.id)["data"]
    assert [(item["org_id"], item["is_primary"]) for item in listed] == [(target["id"], True)]
    with pytest.raises(InvariantViolationError):
        organization_service.move_member(db, from_org_id=target["id"], to_org_id=target["id"], user_id=user.id)
    with pytest.raises(NotFoundError):
        organization_service.move_member(db, from_org_id=target["id"], to_org_id=999999, user_id=user.id)


def test_list_members_with_children_and_org_roles(db_session_fixture, make_user):
    db = db_session_fixture
    parent = _create(db, "Members Parent")
    child = _create(db, "Members Child", parent_id=parent["id"])
    lead = make_user("org-lead")
    staff = make_user("org-staff")
    organization_service.add_members(db, org_id=parent["id"], user_ids=[lead.id])
    organization_service.add_members(db, org_id=child["id"], user_ids=[staff.id])
    role_crud.replace_user_roles_in_org(db, lead.id, parent["id"], [role_crud.get_by_code(db, "user").id])
    db.commit()

    listed = organization_service.list_members(db, org_id=parent["id"])["data"]

    assert listed["total"] == 1
    assert listed["items"][0]["role_codes"] == ["user"]
    assert listed["items"][0]["is_primary"] is False
    assert _member_ids(db, parent["id"], include_children=True) == sorted([lead.id, staff.id])
    assert _member_ids(db, parent["id"], include_children=True, search="staff") == [staff.id]


def test_delete_removes_memberships(db_session_fixture, make_user):
    db = db_session_fixture
    org = _create(db, "Delete Members")
    user = make_user("org-deleted-member")
    organization_service.set_primary(db, org_id=org["id"], user_id=user.id)

    organization_service.delete(db, org_id=org["id"])

    assert user_organization_crud.get_primary_org_id(db, user.id) is None
