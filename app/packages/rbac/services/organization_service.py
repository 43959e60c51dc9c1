"""组织相关业务逻辑：列表、树形结构、增删改、防环的层级调整以及成员归属。"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.packages.rbac.core.constants import HTTP_STATUS_OK
from app.packages.rbac.core.exceptions import ConflictError, InvariantViolationError, NotFoundError
from app.packages.rbac.core.logger import logger
from app.packages.rbac.core.responses import create_response
from app.packages.rbac.core.timezone import format_datetime
from app.packages.rbac.crud.base import is_code_taken
from app.packages.rbac.crud.organizations import organization_crud, user_organization_crud
from app.packages.rbac.crud.roles import role_crud
from app.packages.rbac.crud.users import user_crud
from app.packages.rbac.db.session import transaction
from app.packages.rbac.models.organization import Organization
from app.packages.rbac.models.user import User
from app.packages.rbac.utils.codes import insert_with_unique_code, slugify_code
from app.packages.rbac.utils.tree import build_tree, collect_subtree_ids, parent_map, would_create_cycle


class OrganizationService:
    """封装组织的查询与维护。"""

    def list_organizations(
        self,
        db: Session,
        *,
        search: Optional[str] = None,
        include_inactive: bool = False,
        page: int = 1,
        page_size: int = 10,
    ) -> dict:
        page = max(page, 1)
        page_size = max(page_size, 1)
        items, total = organization_crud.list_with_filters(
            db,
            search=search,
            include_inactive=include_inactive,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        payload = {
            "total": total,
            "items": [self._serialize(item) for item in items],
            "page": page,
            "page_size": page_size,
        }
        return create_response("获取组织列表成功", payload, HTTP_STATUS_OK)

    def list_tree(self, db: Session, *, include_inactive: bool = True) -> dict:
        """返回组织的树形结构，按 `sort_order, id` 排序。"""
        items: List[Organization] = organization_crud.list_all(db, include_inactive=include_inactive)
        tree = build_tree(items, serializer=self._serialize)
        return create_response("获取组织树成功", tree, HTTP_STATUS_OK)

    def get_detail(self, db: Session, *, org_id: int) -> dict:
        org = self._get_or_404(db, org_id)
        return create_response("获取组织详情成功", self._serialize(org), HTTP_STATUS_OK)

    def create(
        self,
        db: Session,
        *,
        name: str,
        code: Optional[str] = None,
        parent_id: Optional[int] = None,
        sort_order: int = 0,
        is_active: bool = True,
    ) -> dict:
        """新建组织：编码缺省时由名称派生，已被占用时追加 ``-1``、``-2``… 直至可用。"""
        clean_name = (name or "").strip()
        if not clean_name:
            raise InvariantViolationError("组织名称不能为空")
        if parent_id is not None:
            self._get_or_404(db, parent_id, message="父级组织不存在")

        raw_code = (code or "").strip()
        base = raw_code or slugify_code(clean_name, separator="-", prefix="org")

        def build(candidate: str) -> Organization:
            return Organization(
                name=clean_name,
                code=candidate,
                parent_id=parent_id,
                sort_order=max(sort_order or 0, 0),
                is_active=is_active,
            )

        org = insert_with_unique_code(db, Organization, base, build, separator="-")
        logger.info("Organization %s created with code %s", org.id, org.code)
        return create_response("创建组织成功", self._serialize(org), HTTP_STATUS_OK)

    def update(self, db: Session, *, org_id: int, payload: Dict[str, Any]) -> dict:
        """部分更新；``parent_id`` 变化前先做防环校验。"""
        org = self._get_or_404(db, org_id)
        fields: Dict[str, Any] = {}

        if "name" in payload:
            clean_name = (payload["name"] or "").strip()
            if not clean_name:
                raise InvariantViolationError("组织名称不能为空")
            fields["name"] = clean_name

        if "code" in payload:
            clean_code = (payload["code"] or "").strip()
            if not clean_code:
                raise InvariantViolationError("组织编码不能为空")
            if is_code_taken(db, Organization, clean_code, exclude_id=org.id):
                raise ConflictError("组织编码已存在，请更换名称或编码")
            fields["code"] = clean_code

        for key in ("sort_order", "is_active"):
            if key in payload and payload[key] is not None:
                fields[key] = payload[key]

        if "parent_id" in payload:
            parent_id = payload["parent_id"]
            self._assert_valid_parent(db, org.id, parent_id)
            fields["parent_id"] = parent_id

        if not fields:
            raise InvariantViolationError("没有提供要更新的字段")

        with transaction(db):
            organization_crud.update(db, org, fields)
        db.refresh(org)
        return create_response("更新组织成功", self._serialize(org), HTTP_STATUS_OK)

    def move(self, db: Session, *, org_id: int, parent_id: Optional[int]) -> dict:
        org = self._get_or_404(db, org_id)
        self._assert_valid_parent(db, org.id, parent_id)
        with transaction(db):
            organization_crud.update(db, org, {"parent_id": parent_id})
        logger.info("Organization %s moved under %s", org_id, parent_id)
        return create_response("移动成功", self._serialize(org), HTTP_STATUS_OK)

    def delete(self, db: Session, *, org_id: int) -> dict:
        org = self._get_or_404(db, org_id)
        if organization_crud.has_children(db, org.id):
            raise InvariantViolationError("请先删除或移动该组织的子节点")
        with transaction(db):
            user_organization_crud.remove_for_org(db, org.id)
            organization_crud.delete(db, org)
        logger.info("Organization %s deleted", org_id)
        return create_response("组织删除成功", {"id": org_id}, HTTP_STATUS_OK)

    def batch_reparent(self, db: Session, *, items: Iterable[Dict[str, Any]]) -> dict:
        """批量调整父级与排序：基于调整后的整体结构校验，任一项失败则全部不生效。"""
        updates = list(items)
        if not updates:
            raise InvariantViolationError("参数错误：updates 不能为空")

        orgs = {org.id: org for org in organization_crud.list_all(db)}
        projected = parent_map(orgs.values())
        for update in updates:
            org_id = update.get("id")
            if org_id not in orgs:
                raise NotFoundError(f"组织不存在：{org_id}")
            if "parent_id" in update:
                parent_id = update["parent_id"]
                if parent_id is not None and parent_id not in orgs:
                    raise NotFoundError(f"父级组织不存在：{parent_id}")
                projected[org_id] = parent_id

        for update in updates:
            if "parent_id" in update and would_create_cycle(projected, update["id"], projected[update["id"]]):
                logger.warning("Rejected organization batch move: %s under %s", update["id"], update["parent_id"])
                raise InvariantViolationError(f"更新将导致层级循环：id={update['id']}")

        with transaction(db):
            for update in updates:
                fields: Dict[str, Any] = {}
                if "parent_id" in update:
                    fields["parent_id"] = update["parent_id"]
                if update.get("sort_order") is not None:
                    fields["sort_order"] = update["sort_order"]
                if fields:
                    organization_crud.update(db, orgs[update["id"]], fields)
        return create_response("批量更新成功", {"updated": len(updates)}, HTTP_STATUS_OK)

    # -----------------------------
    # 组织成员
    # -----------------------------

    def list_members(
        self,
        db: Session,
        *,
        org_id: int,
        search: Optional[str] = None,
        include_children: bool = False,
        page: int = 1,
        page_size: int = 10,
    ) -> dict:
        """组织成员列表；``include_children`` 为真时包含全部子孙组织的成员。"""
        self._get_or_404(db, org_id)
        org_ids = {org_id}
        if include_children:
            org_ids = collect_subtree_ids(organization_crud.list_all(db), org_id)

        page = max(page, 1)
        page_size = max(page_size, 1)
        users, total = user_organization_crud.list_members(
            db,
            org_ids,
            search=search,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        payload = {
            "total": total,
            "items": [self._serialize_member(db, user, org_id) for user in users],
            "page": page,
            "page_size": page_size,
        }
        return create_response("获取组织成员成功", payload, HTTP_STATUS_OK)

    def add_members(self, db: Session, *, org_id: int, user_ids: Iterable[int]) -> dict:
        """批量把用户加入组织，已是成员的忽略；任一用户不存在则整体拒绝。"""
        self._get_or_404(db, org_id)
        requested = sorted({int(user_id) for user_id in user_ids})
        if not requested:
            raise InvariantViolationError("user_ids 不能为空")
        found = {user.id for user in user_crud.list_by_ids(db, requested)}
        missing = [user_id for user_id in requested if user_id not in found]
        if missing:
            raise NotFoundError(f"用户不存在：{missing}")

        with transaction(db):
            added = user_organization_crud.add_members(db, org_id, requested)
        logger.info("Users %s added to organization %s", added, org_id)
        return create_response("添加组织成员成功", {"org_id": org_id, "added": added}, HTTP_STATUS_OK)

    def remove_member(self, db: Session, *, org_id: int, user_id: int) -> dict:
        """移除成员；主组织不能直接移除，需先变更主组织。"""
        membership = user_organization_crud.get_one(db, user_id, org_id)
        if membership is None:
            raise NotFoundError("该用户不在此组织下")
        if membership.is_primary:
            raise InvariantViolationError("不能移除用户的主组织，请先变更其主组织")
        with transaction(db):
            user_organization_crud.delete(db, membership)
        logger.info("User %s removed from organization %s", user_id, org_id)
        return create_response("移除组织成员成功", {"user_id": user_id, "org_id": org_id}, HTTP_STATUS_OK)

    def set_primary(self, db: Session, *, org_id: int, user_id: int) -> dict:
        """设置用户的主组织，尚未归属该组织时自动加入。"""
        self._get_or_404(db, org_id)
        self._get_user_or_404(db, user_id)
        with transaction(db):
            user_organization_crud.set_primary(db, user_id, org_id)
        logger.info("Primary organization of user %s set to %s", user_id, org_id)
        return create_response("设置主组织成功", {"user_id": user_id, "org_id": org_id}, HTTP_STATUS_OK)

    def move_member(self, db: Session, *, from_org_id: int, to_org_id: int, user_id: int) -> dict:
        """把用户从一个组织调到另一个组织：目标组织成为主组织，原归属删除。"""
        if from_org_id == to_org_id:
            raise InvariantViolationError("源与目标组织相同")
        self._get_or_404(db, from_org_id)
        self._get_or_404(db, to_org_id)
        self._get_user_or_404(db, user_id)

        with transaction(db):
            user_organization_crud.set_primary(db, user_id, to_org_id)
            source = user_organization_crud.get_one(db, user_id, from_org_id)
            if source is not None:
                user_organization_crud.delete(db, source)
        logger.info("User %s moved from organization %s to %s", user_id, from_org_id, to_org_id)
        data = {"user_id": user_id, "from_org_id": from_org_id, "to_org_id": to_org_id}
        return create_response("调整用户组织成功", data, HTTP_STATUS_OK)

    def list_user_organizations(self, db: Session, *, user_id: int) -> dict:
        """用户归属的组织，主组织排在最前。"""
        self._get_user_or_404(db, user_id)
        memberships = user_organization_crud.list_for_user(db, user_id)
        orgs = {org.id: org for org in organization_crud.list_by_ids(db, [item.org_id for item in memberships])}
        items = [
            {
                "org_id": item.org_id,
                "org_name": orgs[item.org_id].name if item.org_id in orgs else None,
                "org_code": orgs[item.org_id].code if item.org_id in orgs else None,
                "is_primary": bool(item.is_primary),
            }
            for item in memberships
        ]
        return create_response("获取用户组织成功", items, HTTP_STATUS_OK)

    # -----------------------------
    # 内部工具
    # -----------------------------

    def _get_or_404(self, db: Session, org_id: int, *, message: str = "组织不存在") -> Organization:
        org = organization_crud.get(db, org_id)
        if org is None:
            raise NotFoundError(message)
        return org

    def _assert_valid_parent(self, db: Session, org_id: int, parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        self._get_or_404(db, parent_id, message="父级组织不存在")
        if would_create_cycle(organization_crud.list_all(db), org_id, parent_id):
            logger.warning("Rejected organization move: %s under %s forms a cycle", org_id, parent_id)
            raise InvariantViolationError("不能将组织移动到自身的子孙节点下")

    @staticmethod
    def _get_user_or_404(db: Session, user_id: int) -> User:
        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError("用户不存在")
        return user

    @staticmethod
    def _serialize_member(db: Session, user: User, org_id: int) -> Dict[str, Any]:
        membership = user_organization_crud.get_one(db, user.id, org_id)
        return {
            "id": user.id,
            "username": user.username,
            "nickname": user.nickname,
            "is_active": bool(user.is_active),
            "is_primary": bool(membership.is_primary) if membership is not None else False,
            "role_codes": [role.code for role in role_crud.list_user_roles(db, user.id, org_id)],
        }

    @staticmethod
    def _serialize(org: Organization) -> Dict[str, Any]:
        return {
            "id": org.id,
            "name": org.name,
            "code": org.code,
            "parent_id": org.parent_id,
            "sort_order": org.sort_order,
            "is_active": bool(org.is_active),
            "create_time": format_datetime(org.create_time),
            "update_time": format_datetime(org.update_time),
        }


organization_service = OrganizationService()
