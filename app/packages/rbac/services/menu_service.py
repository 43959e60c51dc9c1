"""菜单管理服务：菜单树查询、增删改以及批量排序/移动。"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.packages.rbac.core.constants import HTTP_STATUS_FORBIDDEN, HTTP_STATUS_OK
from app.packages.rbac.core.enums import MenuTypeEnum
from app.packages.rbac.core.exceptions import ConflictError, InvariantViolationError, NotFoundError
from app.packages.rbac.core.logger import logger
from app.packages.rbac.core.responses import create_response
from app.packages.rbac.core.timezone import format_datetime
from app.packages.rbac.crud.menus import menu_crud
from app.packages.rbac.db.session import transaction
from app.packages.rbac.models.menu import Menu
from app.packages.rbac.utils.tree import build_tree, parent_map, would_create_cycle

_MENU_TYPES = {item.value for item in MenuTypeEnum}

_MUTABLE_FIELDS = (
    "name",
    "title",
    "path",
    "component",
    "icon",
    "parent_id",
    "sort_order",
    "is_hidden",
    "is_disabled",
    "menu_type",
    "permission_code",
    "redirect",
    "meta",
    "description",
)

_NOT_NULL_FIELDS = ("sort_order", "is_hidden", "is_disabled", "menu_type")


def serialize_menu(menu: Menu) -> Dict[str, Any]:
    return {
        "id": menu.id,
        "name": menu.name,
        "title": menu.title,
        "path": menu.path,
        "component": menu.component,
        "icon": menu.icon,
        "parent_id": menu.parent_id,
        "sort_order": menu.sort_order,
        "level": menu.level,
        "is_hidden": bool(menu.is_hidden),
        "is_disabled": bool(menu.is_disabled),
        "is_system": bool(menu.is_system),
        "menu_type": menu.menu_type,
        "permission_code": menu.permission_code,
        "redirect": menu.redirect,
        "meta": menu.meta,
        "description": menu.description,
        "create_time": format_datetime(menu.create_time),
        "update_time": format_datetime(menu.update_time),
    }


def normalize_menu_type(value: Optional[str], *, strict: bool = False) -> str:
    """校验菜单类型；非严格模式下未知值回退为 ``menu``。"""
    candidate = (value or "").strip().lower()
    if candidate in _MENU_TYPES:
        return candidate
    if strict and candidate:
        raise InvariantViolationError(f"不支持的菜单类型：{value}")
    return MenuTypeEnum.MENU.value


class MenuService:
    """聚合菜单管理相关的业务能力。"""

    def list_tree(self, db: Session) -> dict:
        """返回全部菜单（含禁用）的树形结构。"""
        items = menu_crud.list_all(db)
        tree = build_tree(items, serializer=serialize_menu)
        return create_response("获取菜单树成功", tree, HTTP_STATUS_OK)

    def get_detail(self, db: Session, *, menu_id: int) -> dict:
        menu = self._get_menu_or_404(db, menu_id)
        return create_response("获取菜单详情成功", serialize_menu(menu), HTTP_STATUS_OK)

    def create(self, db: Session, *, payload: Dict[str, Any]) -> dict:
        name = (payload.get("name") or "").strip()
        title = (payload.get("title") or "").strip()
        if not name or not title:
            raise InvariantViolationError("菜单标识与标题不能为空")
        if menu_crud.get_by_name(db, name) is not None:
            raise ConflictError("菜单标识已存在")

        parent_id = payload.get("parent_id")
        level = 1
        if parent_id is not None:
            parent = menu_crud.get(db, parent_id)
            if parent is None:
                raise NotFoundError("父级菜单不存在")
            level = parent.level + 1

        fields = {key: payload[key] for key in _MUTABLE_FIELDS if key in payload}
        fields.update(
            {
                "name": name,
                "title": title,
                "parent_id": parent_id,
                "level": level,
                "is_system": False,
                "sort_order": payload.get("sort_order") or 0,
                "menu_type": normalize_menu_type(payload.get("menu_type"), strict=True),
            }
        )

        with transaction(db):
            menu = menu_crud.create(db, fields)
        db.refresh(menu)
        logger.info("Menu %s (%s) created", menu.name, menu.id)
        return create_response("创建菜单成功", serialize_menu(menu), HTTP_STATUS_OK)

    def update(self, db: Session, *, menu_id: int, payload: Dict[str, Any]) -> dict:
        """部分更新：仅处理 ``payload`` 中出现的字段。"""
        menu = self._get_menu_or_404(db, menu_id)
        fields = {key: payload[key] for key in _MUTABLE_FIELDS if key in payload}
        for key in _NOT_NULL_FIELDS:
            if key in fields and fields[key] is None:
                fields.pop(key)

        if "name" in fields:
            new_name = (fields["name"] or "").strip()
            if not new_name:
                raise InvariantViolationError("菜单标识不能为空")
            if new_name != menu.name:
                if menu.is_system:
                    raise InvariantViolationError("系统菜单不允许修改标识", HTTP_STATUS_FORBIDDEN)
                if menu_crud.get_by_name(db, new_name, exclude_id=menu.id) is not None:
                    raise ConflictError("菜单标识已存在")
            fields["name"] = new_name

        if "title" in fields and not (fields["title"] or "").strip():
            raise InvariantViolationError("菜单标题不能为空")

        if "menu_type" in fields:
            fields["menu_type"] = normalize_menu_type(fields["menu_type"], strict=True)

        reparent = "parent_id" in fields and fields["parent_id"] != menu.parent_id
        if reparent:
            self._assert_valid_parent(db, menu.id, fields["parent_id"])

        with transaction(db):
            menu_crud.update(db, menu, fields)
            if reparent:
                menu_crud.recompute_levels(db)
        db.refresh(menu)
        return create_response("更新菜单成功", serialize_menu(menu), HTTP_STATUS_OK)

    def delete(self, db: Session, *, menu_id: int) -> dict:
        menu = self._get_menu_or_404(db, menu_id)
        if menu.is_system:
            raise InvariantViolationError("系统菜单不允许删除", HTTP_STATUS_FORBIDDEN)
        if menu_crud.has_children(db, menu.id):
            raise InvariantViolationError("无法删除包含子菜单的菜单项")

        menu_name = menu.name
        with transaction(db):
            menu_crud.delete_many(db, [menu.id])
        logger.info("Menu %s (%s) deleted", menu_name, menu_id)
        return create_response("删除菜单成功", {"id": menu_id}, HTTP_STATUS_OK)

    def batch_sort(self, db: Session, *, items: Iterable[Dict[str, Any]]) -> dict:
        """批量调整排序与父级：先在内存中模拟整体结果并校验，全部通过后一次性提交。

        每项形如 ``{"id": 1, "sort_order": 2, "parent_id": 3}``；未出现的键保持原值，
        ``parent_id`` 显式为 ``None`` 表示移动到根级。
        """

        updates = list(items)
        if not updates:
            return create_response("菜单排序已更新", {"updated": 0}, HTTP_STATUS_OK)

        menus = {menu.id: menu for menu in menu_crud.list_all(db)}
        projected = parent_map(menus.values())
        for update in updates:
            menu_id = update.get("id")
            if menu_id not in menus:
                raise NotFoundError(f"菜单不存在：{menu_id}")
            if "parent_id" in update:
                parent_id = update["parent_id"]
                if parent_id is not None and parent_id not in menus:
                    raise NotFoundError(f"父级菜单不存在：{parent_id}")
                projected[menu_id] = parent_id

        for update in updates:
            if "parent_id" not in update:
                continue
            if would_create_cycle(projected, update["id"], projected[update["id"]]):
                logger.warning("Rejected menu batch move: %s under %s forms a cycle", update["id"], update["parent_id"])
                raise InvariantViolationError("调整后的菜单层级存在循环引用")

        with transaction(db):
            for update in updates:
                menu = menus[update["id"]]
                fields: Dict[str, Any] = {}
                if update.get("sort_order") is not None:
                    fields["sort_order"] = update["sort_order"]
                if "parent_id" in update:
                    fields["parent_id"] = update["parent_id"]
                if fields:
                    menu_crud.update(db, menu, fields)
            menu_crud.recompute_levels(db)
        return create_response("菜单排序已更新", {"updated": len(updates)}, HTTP_STATUS_OK)

    # -----------------------------
    # 内部工具
    # -----------------------------

    def _get_menu_or_404(self, db: Session, menu_id: int) -> Menu:
        menu = menu_crud.get(db, menu_id)
        if menu is None:
            raise NotFoundError("菜单不存在")
        return menu

    def _assert_valid_parent(self, db: Session, menu_id: int, parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        if menu_crud.get(db, parent_id) is None:
            raise NotFoundError("父级菜单不存在")
        all_menus: List[Menu] = menu_crud.list_all(db)
        if would_create_cycle(all_menus, menu_id, parent_id):
            logger.warning("Rejected menu move: %s under %s forms a cycle", menu_id, parent_id)
            raise InvariantViolationError("不能将菜单移动到自身或其子级下")


menu_service = MenuService()
