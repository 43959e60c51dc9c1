"""角色管理服务：角色增删改查、菜单授权以及用户角色分配（全局 / 组织作用域）。"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.packages.rbac.core.constants import HTTP_STATUS_FORBIDDEN, HTTP_STATUS_OK
from app.packages.rbac.core.exceptions import ConflictError, InvariantViolationError, NotFoundError
from app.packages.rbac.core.logger import logger
from app.packages.rbac.core.responses import create_response
from app.packages.rbac.core.timezone import format_datetime
from app.packages.rbac.crud.base import is_code_taken
from app.packages.rbac.crud.menus import menu_crud
from app.packages.rbac.crud.organizations import organization_crud
from app.packages.rbac.crud.roles import role_crud
from app.packages.rbac.crud.users import user_crud
from app.packages.rbac.db.session import transaction
from app.packages.rbac.models.role import Role
from app.packages.rbac.models.user import User
from app.packages.rbac.utils.codes import insert_with_unique_code, next_free_code, slugify_code

ROLE_CODE_SEPARATOR = "_"


def _normalize_ids(values: Optional[Iterable[int]]) -> List[int]:
    return sorted({int(value) for value in values or [] if value is not None})


class RoleService:
    """聚合角色管理相关的业务能力。"""

    def list_roles(
        self,
        db: Session,
        *,
        keyword: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        page = max(page, 1)
        page_size = max(page_size, 1)
        items, total = role_crud.list_with_filters(
            db,
            keyword=keyword,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        payload = {
            "total": total,
            "items": [self._serialize_role(item) for item in items],
            "page": page,
            "page_size": page_size,
        }
        return create_response("获取角色列表成功", payload, HTTP_STATUS_OK)

    def get_detail(self, db: Session, *, role_id: int) -> dict:
        role = self._get_role_or_404(db, role_id)
        data = self._serialize_role(role)
        data["menu_ids"] = role_crud.list_menu_ids(db, role.id)
        return create_response("获取角色详情成功", data, HTTP_STATUS_OK)

    def suggest_code(self, db: Session, *, name: str) -> dict:
        base = slugify_code(name, separator=ROLE_CODE_SEPARATOR, prefix="role")
        code, _ = next_free_code(db, Role, base, separator=ROLE_CODE_SEPARATOR)
        return create_response("生成编码成功", {"code": code}, HTTP_STATUS_OK)

    def create(
        self,
        db: Session,
        *,
        name: str,
        code: Optional[str] = None,
        description: Optional[str] = None,
        sort_order: Optional[int] = None,
        is_disabled: bool = False,
        menu_ids: Optional[Iterable[int]] = None,
    ) -> dict:
        """新建角色。

        显式传入的编码被占用时直接返回 409；由名称派生的编码则追加 ``_1``、``_2``… 消歧。
        ``sort_order`` 缺省为当前最大值 + 1。
        """

        clean_name = (name or "").strip()
        if not clean_name:
            raise InvariantViolationError("角色名称不能为空")
        if role_crud.get_by_name(db, clean_name) is not None:
            raise ConflictError("角色名称已存在")

        raw_code = (code or "").strip()
        max_attempts = None
        if raw_code:
            base = slugify_code(raw_code, separator=ROLE_CODE_SEPARATOR, prefix="role")
            if is_code_taken(db, Role, base):
                raise ConflictError("角色编码已存在")
            max_attempts = 1
        else:
            base = slugify_code(clean_name, separator=ROLE_CODE_SEPARATOR, prefix="role")

        granted = self._validate_menu_ids(db, menu_ids)
        order = sort_order if sort_order is not None else role_crud.next_sort_order(db)

        def build(candidate: str) -> Role:
            return Role(
                name=clean_name,
                code=candidate,
                description=(description.strip() if description and description.strip() else None),
                sort_order=max(order, 0),
                is_system=False,
                is_disabled=is_disabled,
            )

        def grant_menus(role: Role) -> None:
            if granted:
                role_crud.replace_menus(db, role.id, granted)

        role = insert_with_unique_code(
            db,
            Role,
            base,
            build,
            separator=ROLE_CODE_SEPARATOR,
            on_created=grant_menus,
            max_attempts=max_attempts,
        )
        logger.info("Role %s created with code %s", role.id, role.code)
        data = self._serialize_role(role)
        data["menu_ids"] = role_crud.list_menu_ids(db, role.id)
        return create_response("创建角色成功", data, HTTP_STATUS_OK)

    def update(self, db: Session, *, role_id: int, payload: Dict[str, Any]) -> dict:
        """部分更新；系统角色不允许修改名称与编码。"""
        role = self._get_role_or_404(db, role_id)
        fields: Dict[str, Any] = {}

        if "name" in payload:
            clean_name = (payload["name"] or "").strip()
            if not clean_name:
                raise InvariantViolationError("角色名称不能为空")
            if clean_name != role.name:
                if role.is_system:
                    raise InvariantViolationError("系统角色不允许重命名", HTTP_STATUS_FORBIDDEN)
                existing = role_crud.get_by_name(db, clean_name)
                if existing is not None and existing.id != role.id:
                    raise ConflictError("角色名称已存在")
                fields["name"] = clean_name

        if "code" in payload:
            raw_code = (payload["code"] or "").strip()
            if not raw_code:
                raise InvariantViolationError("角色编码不能为空")
            clean_code = slugify_code(raw_code, separator=ROLE_CODE_SEPARATOR, prefix="role")
            if clean_code != role.code:
                if role.is_system:
                    raise InvariantViolationError("系统角色不允许修改编码", HTTP_STATUS_FORBIDDEN)
                if is_code_taken(db, Role, clean_code, exclude_id=role.id):
                    raise ConflictError("角色编码已存在")
                fields["code"] = clean_code

        if "description" in payload:
            description = payload["description"]
            fields["description"] = description.strip() if description and description.strip() else None
        for key in ("sort_order", "is_disabled"):
            if key in payload and payload[key] is not None:
                fields[key] = payload[key]

        granted = None
        if "menu_ids" in payload and payload["menu_ids"] is not None:
            granted = self._validate_menu_ids(db, payload["menu_ids"])

        with transaction(db):
            if fields:
                role_crud.update(db, role, fields)
            if granted is not None:
                role_crud.replace_menus(db, role.id, granted)
        db.refresh(role)
        data = self._serialize_role(role)
        data["menu_ids"] = role_crud.list_menu_ids(db, role.id)
        return create_response("更新角色成功", data, HTTP_STATUS_OK)

    def delete(self, db: Session, *, role_id: int) -> dict:
        role = self._get_role_or_404(db, role_id)
        if role.is_system:
            raise InvariantViolationError("系统角色不允许删除", HTTP_STATUS_FORBIDDEN)
        if role_crud.count_holders(db, role.id) > 0:
            raise InvariantViolationError("该角色仍有用户在使用，无法删除")

        # role_menus 中的授权随 Role.menus 关系一并删除
        with transaction(db):
            role_crud.delete(db, role)
        logger.info("Role %s (%s) deleted", role.code, role_id)
        return create_response("删除角色成功", {"id": role_id}, HTTP_STATUS_OK)

    # -----------------------------
    # 角色 → 菜单
    # -----------------------------

    def get_role_menus(self, db: Session, *, role_id: int) -> dict:
        role = self._get_role_or_404(db, role_id)
        return create_response("获取角色菜单成功", {"role_id": role.id, "menu_ids": role_crud.list_menu_ids(db, role.id)})

    def set_role_menus(self, db: Session, *, role_id: int, menu_ids: Iterable[int]) -> dict:
        """覆盖式设置角色的菜单授权，整体在一个事务内完成。"""
        role = self._get_role_or_404(db, role_id)
        granted = self._validate_menu_ids(db, menu_ids)
        with transaction(db):
            stored = role_crud.replace_menus(db, role.id, granted)
        logger.info("Role %s granted %s menus", role.id, len(stored))
        return create_response("设置角色菜单成功", {"role_id": role.id, "menu_ids": stored}, HTTP_STATUS_OK)

    # -----------------------------
    # 角色 ⇄ 用户（全局作用域）
    # -----------------------------

    def list_role_users(self, db: Session, *, role_id: int) -> dict:
        role = self._get_role_or_404(db, role_id)
        users = user_crud.list_by_ids(db, role_crud.list_holder_ids(db, role.id))
        items = [self._serialize_user(user) for user in sorted(users, key=lambda item: item.id)]
        return create_response("获取角色用户成功", items, HTTP_STATUS_OK)

    def add_users_to_role(self, db: Session, *, role_id: int, user_ids: Iterable[int]) -> dict:
        role = self._get_role_or_404(db, role_id)
        users = self._validate_user_ids(db, user_ids)
        with transaction(db):
            for user in users:
                current = {item.id for item in role_crud.list_user_roles(db, user.id)}
                if role.id not in current:
                    role_crud.replace_user_roles(db, user.id, current | {role.id})
        return create_response("添加角色用户成功", {"role_id": role.id, "user_ids": [user.id for user in users]})

    def remove_user_from_role(self, db: Session, *, role_id: int, user_id: int) -> dict:
        role = self._get_role_or_404(db, role_id)
        user = self._get_user_or_404(db, user_id)
        current = {item.id for item in role_crud.list_user_roles(db, user.id)}
        if role.id not in current:
            raise NotFoundError("该用户不在此角色中")
        with transaction(db):
            role_crud.replace_user_roles(db, user.id, current - {role.id})
        return create_response("移除角色用户成功", {"role_id": role.id, "user_id": user.id})

    # -----------------------------
    # 用户 → 角色
    # -----------------------------

    def get_user_roles(self, db: Session, *, user_id: int, org_id: Optional[int] = None) -> dict:
        user = self._get_user_or_404(db, user_id)
        if org_id is not None:
            self._get_org_or_404(db, org_id)
        roles = role_crud.list_user_roles(db, user.id, org_id)
        return create_response("获取用户角色成功", [self._serialize_role(role) for role in roles], HTTP_STATUS_OK)

    def set_user_roles(self, db: Session, *, user_id: int, role_ids: Iterable[int]) -> dict:
        user = self._get_user_or_404(db, user_id)
        ids = self._validate_role_ids(db, role_ids)
        with transaction(db):
            stored = role_crud.replace_user_roles(db, user.id, ids)
        logger.info("User %s assigned global roles %s", user.id, stored)
        return create_response("设置用户角色成功", {"user_id": user.id, "role_ids": stored}, HTTP_STATUS_OK)

    def set_user_roles_in_org(self, db: Session, *, user_id: int, org_id: int, role_ids: Iterable[int]) -> dict:
        user = self._get_user_or_404(db, user_id)
        org = self._get_org_or_404(db, org_id)
        ids = self._validate_role_ids(db, role_ids)
        with transaction(db):
            stored = role_crud.replace_user_roles_in_org(db, user.id, org.id, ids)
        logger.info("User %s assigned roles %s in organization %s", user.id, stored, org.id)
        return create_response(
            "设置用户组织角色成功",
            {"user_id": user.id, "org_id": org.id, "role_ids": stored},
            HTTP_STATUS_OK,
        )

    # -----------------------------
    # 内部工具
    # -----------------------------

    def _get_role_or_404(self, db: Session, role_id: int) -> Role:
        role = role_crud.get(db, role_id)
        if role is None:
            raise NotFoundError("角色不存在或已删除")
        return role

    def _get_user_or_404(self, db: Session, user_id: int) -> User:
        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError("用户不存在")
        return user

    def _get_org_or_404(self, db: Session, org_id: int):
        org = organization_crud.get(db, org_id)
        if org is None:
            raise NotFoundError("组织不存在")
        return org

    def _validate_menu_ids(self, db: Session, menu_ids: Optional[Iterable[int]]) -> List[int]:
        ids = _normalize_ids(menu_ids)
        found = {menu.id for menu in menu_crud.list_by_ids(db, ids)}
        missing = [item for item in ids if item not in found]
        if missing:
            raise NotFoundError(f"菜单不存在：{missing}")
        return ids

    def _validate_role_ids(self, db: Session, role_ids: Optional[Iterable[int]]) -> List[int]:
        ids = _normalize_ids(role_ids)
        found = {role.id for role in role_crud.list_by_ids(db, ids)}
        missing = [item for item in ids if item not in found]
        if missing:
            raise NotFoundError(f"角色不存在：{missing}")
        return ids

    def _validate_user_ids(self, db: Session, user_ids: Optional[Iterable[int]]) -> List[User]:
        ids = _normalize_ids(user_ids)
        users = user_crud.list_by_ids(db, ids)
        found = {user.id for user in users}
        missing = [item for item in ids if item not in found]
        if missing:
            raise NotFoundError(f"用户不存在：{missing}")
        return sorted(users, key=lambda item: item.id)

    @staticmethod
    def _serialize_role(role: Role) -> Dict[str, Any]:
        return {
            "id": role.id,
            "name": role.name,
            "code": role.code,
            "description": role.description,
            "sort_order": role.sort_order,
            "is_system": bool(role.is_system),
            "is_disabled": bool(role.is_disabled),
            "create_time": format_datetime(role.create_time),
            "update_time": format_datetime(role.update_time),
        }

    @staticmethod
    def _serialize_user(user: User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "username": user.username,
            "nickname": user.nickname,
            "role": user.role,
            "is_active": bool(user.is_active),
        }


role_service = RoleService()
