"""权限解析服务：计算用户（可选组织作用域）对每个菜单的访问权及其来源。

判定顺序（高 → 低）：

1. 管理员直通：全局角色字段命中管理员白名单，或持有启用状态、编码为 ``admin`` 的
   全局角色 / 当前组织内角色。命中后所有启用菜单均可访问，来源为 ``admin``，
   不再考虑个性化授权；
2. 个性化拒绝（deny）；
3. 个性化授予（grant），来源 ``user-grant``；
4. 任一启用角色（全局或当前组织内）被授予该菜单，来源 ``role``；
5. 默认拒绝，来源 ``none``。

禁用菜单不参与解析，对管理员同样不可见。

未指定组织时以用户的主组织作为组织作用域，没有任何归属时只看全局绑定。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.packages.rbac.core.config import get_settings
from app.packages.rbac.core.constants import ADMIN_ROLE_CODE, HTTP_STATUS_OK
from app.packages.rbac.core.enums import BindingScopeEnum, OverrideTypeEnum, PermissionSourceEnum
from app.packages.rbac.core.exceptions import InvariantViolationError, NotFoundError
from app.packages.rbac.core.logger import logger
from app.packages.rbac.core.responses import create_response
from app.packages.rbac.core.timezone import format_datetime
from app.packages.rbac.crud.menus import menu_crud
from app.packages.rbac.crud.organizations import user_organization_crud
from app.packages.rbac.crud.roles import role_crud
from app.packages.rbac.crud.users import user_crud, user_menu_override_crud
from app.packages.rbac.db.session import transaction
from app.packages.rbac.models.menu import Menu
from app.packages.rbac.models.user import User
from app.packages.rbac.services.menu_service import serialize_menu
from app.packages.rbac.utils.tree import build_tree, collect_ancestor_ids, parent_map


@dataclass(frozen=True)
class RoleBinding:
    """用户与角色的一条绑定。``GLOBAL_FIELD`` 来自用户表的 ``role`` 字段，没有 ``role_id``。"""

    scope: BindingScopeEnum
    code: str
    role_id: Optional[int] = None
    org_id: Optional[int] = None

    def grants_admin(self, admin_field_codes: Iterable[str]) -> bool:
        if self.scope is BindingScopeEnum.GLOBAL_FIELD:
            return self.code in set(admin_field_codes)
        return self.code == ADMIN_ROLE_CODE


@dataclass(frozen=True)
class EffectivePermission:
    menu_id: int
    menu_name: Optional[str]
    menu_title: Optional[str]
    parent_id: Optional[int]
    sort_order: int
    level: int
    menu_type: Optional[str]
    permission_code: Optional[str]
    has_permission: bool
    source: PermissionSourceEnum

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return data

    @classmethod
    def for_menu(cls, menu: Menu, has_permission: bool, source: PermissionSourceEnum) -> "EffectivePermission":
        return cls(
            menu_id=menu.id,
            menu_name=menu.name,
            menu_title=menu.title,
            parent_id=menu.parent_id,
            sort_order=menu.sort_order,
            level=menu.level,
            menu_type=menu.menu_type,
            permission_code=menu.permission_code,
            has_permission=has_permission,
            source=source,
        )

    @classmethod
    def denied(cls, menu_id: int, menu: Optional[Menu] = None) -> "EffectivePermission":
        if menu is not None:
            return cls.for_menu(menu, False, PermissionSourceEnum.NONE)
        return cls(
            menu_id=menu_id,
            menu_name=None,
            menu_title=None,
            parent_id=None,
            sort_order=0,
            level=0,
            menu_type=None,
            permission_code=None,
            has_permission=False,
            source=PermissionSourceEnum.NONE,
        )


def decide(
    menu_id: int,
    overrides: Dict[int, str],
    role_menu_ids: set[int],
) -> Tuple[bool, PermissionSourceEnum]:
    """非管理员用户对单个菜单的判定。"""
    override = overrides.get(menu_id)
    if override == OverrideTypeEnum.DENY.value:
        return False, PermissionSourceEnum.DENY
    if override == OverrideTypeEnum.GRANT.value:
        return True, PermissionSourceEnum.USER_GRANT
    if menu_id in role_menu_ids:
        return True, PermissionSourceEnum.ROLE
    return False, PermissionSourceEnum.NONE


class PermissionService:
    """聚合权限解析与个性化授权管理。"""

    # -----------------------------
    # 角色绑定
    # -----------------------------

    def resolve_scope(self, db: Session, user: User, org_id: Optional[int] = None) -> Optional[int]:
        """未显式指定组织时回退到用户的主组织（可通过配置关闭）。"""
        if org_id is None and get_settings().permission_default_primary_org:
            return user_organization_crud.get_primary_org_id(db, user.id)
        return org_id

    def load_bindings(self, db: Session, user: User, org_id: Optional[int] = None) -> List[RoleBinding]:
        """收集用户的全部启用角色绑定：全局绑定始终生效，组织作用域按 :meth:`resolve_scope` 确定。"""
        org_id = self.resolve_scope(db, user, org_id)
        bindings = [RoleBinding(BindingScopeEnum.GLOBAL_FIELD, (user.role or "").strip().lower())]
        for role in role_crud.list_user_roles(db, user.id):
            if not role.is_disabled:
                bindings.append(RoleBinding(BindingScopeEnum.GLOBAL_ROLE, (role.code or "").lower(), role.id))
        if org_id is not None:
            for role in role_crud.list_user_roles(db, user.id, org_id):
                if not role.is_disabled:
                    bindings.append(
                        RoleBinding(BindingScopeEnum.ORG_ROLE, (role.code or "").lower(), role.id, org_id)
                    )
        return bindings

    def _bindings_grant_admin(self, bindings: Iterable[RoleBinding]) -> bool:
        admin_codes = get_settings().global_admin_roles
        return any(binding.grants_admin(admin_codes) for binding in bindings)

    def _load_user(self, db: Session, user_id: int) -> Optional[User]:
        user = user_crud.get(db, user_id)
        if user is None or not user.is_active:
            return None
        return user

    def is_effective_admin(self, db: Session, user_id: int, org_id: Optional[int] = None) -> bool:
        user = self._load_user(db, user_id)
        if user is None:
            return False
        return self._bindings_grant_admin(self.load_bindings(db, user, org_id))

    # -----------------------------
    # 解析
    # -----------------------------

    def resolve_user_menu_permissions(
        self,
        db: Session,
        user_id: int,
        org_id: Optional[int] = None,
    ) -> List[EffectivePermission]:
        """返回每个启用菜单的判定结果，按 ``sort_order, id`` 排序；未知用户返回空列表。"""
        user = self._load_user(db, user_id)
        if user is None:
            return []

        menus = menu_crud.list_all(db, include_disabled=False)
        bindings = self.load_bindings(db, user, org_id)
        if self._bindings_grant_admin(bindings):
            return [EffectivePermission.for_menu(menu, True, PermissionSourceEnum.ADMIN) for menu in menus]

        overrides = self._load_overrides(db, user.id)
        role_menu_ids = role_crud.list_menu_ids_for_roles(db, self._role_ids(bindings))
        results = []
        for menu in menus:
            allowed, source = decide(menu.id, overrides, role_menu_ids)
            results.append(EffectivePermission.for_menu(menu, allowed, source))
        return results

    def get_user_menu_tree(
        self,
        db: Session,
        user_id: int,
        org_id: Optional[int] = None,
        auto_include_ancestors: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """用户可访问菜单组成的树。

        默认情况下子菜单只有在所有祖先也被授予时才会出现；开启 ``auto_include_ancestors``
        后，被授予菜单的启用祖先会被自动补齐。
        """

        if auto_include_ancestors is None:
            auto_include_ancestors = get_settings().menu_auto_include_ancestors

        permissions = self.resolve_user_menu_permissions(db, user_id, org_id)
        granted = {item.menu_id for item in permissions if item.has_permission}
        if not granted:
            return []

        menus = {menu.id: menu for menu in menu_crud.list_all(db, include_disabled=False)}
        parents = parent_map(menus.values())
        if auto_include_ancestors:
            granted |= collect_ancestor_ids(parents, granted)

        visible = [
            menus[menu_id]
            for menu_id in granted
            if menu_id in menus and self._chain_granted(menu_id, parents, granted)
        ]
        return build_tree(visible, serializer=serialize_menu)

    def check_single_menu_permission(
        self,
        db: Session,
        user_id: int,
        org_id: Optional[int],
        menu_id: int,
    ) -> EffectivePermission:
        """与批量解析相同的判定，但只加载单个菜单。"""
        user = self._load_user(db, user_id)
        menu = menu_crud.get(db, menu_id)
        if user is None or menu is None or menu.is_disabled:
            return EffectivePermission.denied(menu_id, menu)

        bindings = self.load_bindings(db, user, org_id)
        if self._bindings_grant_admin(bindings):
            return EffectivePermission.for_menu(menu, True, PermissionSourceEnum.ADMIN)

        override = user_menu_override_crud.get_one(db, user.id, menu.id)
        overrides = {menu.id: override.permission_type} if override is not None else {}
        role_menu_ids = role_crud.list_menu_ids_for_roles(db, self._role_ids(bindings))
        allowed, source = decide(menu.id, overrides, role_menu_ids)
        return EffectivePermission.for_menu(menu, allowed, source)

    def check_permission_code(self, db: Session, user_id: int, org_id: Optional[int], code: str) -> bool:
        """任一携带该权限字符的启用菜单被授予即返回 ``True``。

        管理员在菜单查找之前放行，不依赖承载该权限字符的菜单是否存在或启用。
        """
        if not code:
            return False
        user = self._load_user(db, user_id)
        if user is None:
            return False
        bindings = self.load_bindings(db, user, org_id)
        if self._bindings_grant_admin(bindings):
            return True

        menus = menu_crud.list_by_permission_code(db, code)
        if not menus:
            return False
        overrides = self._load_overrides(db, user.id)
        role_menu_ids = role_crud.list_menu_ids_for_roles(db, self._role_ids(bindings))
        return any(decide(menu.id, overrides, role_menu_ids)[0] for menu in menus)

    # -----------------------------
    # 个性化授权管理
    # -----------------------------

    def list_overrides(self, db: Session, *, user_id: int) -> dict:
        self._get_user_or_404(db, user_id)
        items = [self._serialize_override(item) for item in user_menu_override_crud.list_for_user(db, user_id)]
        return create_response("获取个性化菜单授权成功", items, HTTP_STATUS_OK)

    def set_override(self, db: Session, *, user_id: int, menu_id: int, permission_type: str) -> dict:
        normalized = (permission_type or "").strip().lower()
        if normalized not in {item.value for item in OverrideTypeEnum}:
            raise InvariantViolationError("授权类型仅支持 grant 或 deny")
        self._get_user_or_404(db, user_id)
        if menu_crud.get(db, menu_id) is None:
            raise NotFoundError("菜单不存在")

        with transaction(db):
            override = user_menu_override_crud.upsert(db, user_id, menu_id, normalized)
        db.refresh(override)
        logger.info("Menu override %s set for user %s on menu %s", normalized, user_id, menu_id)
        return create_response("设置个性化菜单授权成功", self._serialize_override(override), HTTP_STATUS_OK)

    def remove_override(self, db: Session, *, user_id: int, menu_id: int) -> dict:
        self._get_user_or_404(db, user_id)
        with transaction(db):
            removed = user_menu_override_crud.remove(db, user_id, menu_id)
        if not removed:
            raise NotFoundError("个性化菜单授权不存在")
        logger.info("Menu override removed for user %s on menu %s", user_id, menu_id)
        return create_response("移除个性化菜单授权成功", {"user_id": user_id, "menu_id": menu_id}, HTTP_STATUS_OK)

    # -----------------------------
    # 内部工具
    # -----------------------------

    @staticmethod
    def _role_ids(bindings: Iterable[RoleBinding]) -> List[int]:
        return [binding.role_id for binding in bindings if binding.role_id is not None]

    @staticmethod
    def _load_overrides(db: Session, user_id: int) -> Dict[int, str]:
        return {item.menu_id: item.permission_type for item in user_menu_override_crud.list_for_user(db, user_id)}

    @staticmethod
    def _chain_granted(menu_id: int, parents: Dict[int, Optional[int]], granted: set[int]) -> bool:
        seen = {menu_id}
        current = parents.get(menu_id)
        while current is not None:
            if current not in granted or current in seen:
                return False
            seen.add(current)
            current = parents.get(current)
        return True

    @staticmethod
    def _get_user_or_404(db: Session, user_id: int) -> User:
        user = user_crud.get(db, user_id)
        if user is None:
            raise NotFoundError("用户不存在")
        return user

    @staticmethod
    def _serialize_override(item) -> Dict[str, Any]:
        return {
            "user_id": item.user_id,
            "menu_id": item.menu_id,
            "permission_type": item.permission_type,
            "update_time": format_datetime(item.update_time),
        }


permission_service = PermissionService()
