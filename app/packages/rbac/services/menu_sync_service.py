"""菜单种子同步：把静态声明的菜单树对齐到数据库。

节点先按 ``name`` 匹配已有记录，找不到再按 ``path`` 匹配（名称出现在种子中的记录只按名称认领）；
命中则原地更新，否则新增。
整个过程在一个事务内完成，任何失败都会整体回滚。

同步模式：

- ``force``：以种子为准，已有记录的父级、排序、层级一并覆盖；
- ``patch``：已有记录保留人工调整过的父级、排序与层级，只刷新展示字段；
- ``insert_only``：只补齐缺失节点，已有记录保持不变。
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from app.packages.rbac.core.enums import MenuSyncModeEnum
from app.packages.rbac.core.exceptions import InvariantViolationError
from app.packages.rbac.core.logger import logger
from app.packages.rbac.crud.menus import menu_crud
from app.packages.rbac.db.menu_seed import MENU_TREE
from app.packages.rbac.db.session import transaction
from app.packages.rbac.models.menu import Menu
from app.packages.rbac.services.menu_service import normalize_menu_type


class MenuSeed(BaseModel):
    """种子节点的结构校验。"""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=100)
    path: Optional[str] = None
    component: Optional[str] = None
    icon: Optional[str] = None
    menu_type: Optional[str] = None
    is_hidden: bool = False
    is_disabled: bool = False
    is_system: bool = False
    sort_order: Optional[int] = None
    permission_code: Optional[str] = None
    redirect: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    children: List["MenuSeed"] = Field(default_factory=list)


_SEED_ADAPTER = TypeAdapter(List[MenuSeed])

SeedInput = Iterable[Union[MenuSeed, Dict[str, Any]]]


def validate_seed(seed: SeedInput) -> List[MenuSeed]:
    """校验种子结构并检查 ``name`` 在整棵树中唯一。"""
    try:
        nodes = _SEED_ADAPTER.validate_python(list(seed))
    except ValidationError as exc:
        raise InvariantViolationError("菜单种子格式不正确", data=exc.errors(include_url=False)) from exc

    seen: set[str] = set()
    stack = list(nodes)
    while stack:
        node = stack.pop()
        if node.name in seen:
            raise InvariantViolationError(f"菜单种子中存在重复的标识：{node.name}")
        seen.add(node.name)
        stack.extend(node.children)
    return nodes


def _seed_names(nodes: List[MenuSeed]) -> set[str]:
    names: set[str] = set()
    stack = list(nodes)
    while stack:
        node = stack.pop()
        names.add(node.name)
        stack.extend(node.children)
    return names


class _SyncRun:
    """一次同步过程的状态：名称/路径索引、自增排序计数与统计。"""

    def __init__(self, db: Session, mode: MenuSyncModeEnum, seed_names: Iterable[str] = ()) -> None:
        self.db = db
        self.mode = mode
        self.existing: List[Menu] = menu_crud.list_all(db)
        self.by_name: Dict[str, Menu] = {menu.name: menu for menu in self.existing}
        self.by_path: Dict[str, Menu] = {menu.path: menu for menu in self.existing if menu.path}
        self.touched_ids: set[int] = set()
        # 种子里出现的名称只能按名称认领，路径匹配不会抢占
        self.seed_names: set[str] = set(seed_names)
        self.auto_sort = 1
        self.created = 0
        self.updated = 0

    def walk(self, nodes: List[MenuSeed], parent_id: Optional[int], level: int) -> None:
        # 稳定排序：同序号的节点保持种子中的先后顺序
        for node in sorted(nodes, key=lambda item: item.sort_order or 0):
            menu = self.upsert(node, parent_id, level)
            if node.children:
                self.walk(node.children, menu.id, menu.level + 1)

    def _match(self, node: MenuSeed) -> Optional[Menu]:
        # 同一行只能被一个种子节点认领
        menu = self.by_name.get(node.name)
        if menu is not None and menu.id not in self.touched_ids:
            return menu
        if node.path:
            candidate = self.by_path.get(node.path)
            if (
                candidate is not None
                and candidate.id not in self.touched_ids
                and candidate.name not in self.seed_names
            ):
                return candidate
        return None

    def upsert(self, node: MenuSeed, parent_id: Optional[int], level: int) -> Menu:
        sort_order = node.sort_order if node.sort_order is not None else self._next_sort()
        fields: Dict[str, Any] = {
            "name": node.name,
            "title": node.title,
            "path": node.path,
            "component": node.component,
            "icon": node.icon,
            "is_hidden": node.is_hidden,
            "is_disabled": node.is_disabled,
            "is_system": node.is_system,
            "menu_type": normalize_menu_type(node.menu_type),
            "permission_code": node.permission_code,
            "redirect": node.redirect,
            "meta": node.meta,
        }
        if node.description is not None:
            fields["description"] = node.description

        menu = self._match(node)
        if menu is None:
            fields.update({"parent_id": parent_id, "sort_order": sort_order, "level": level})
            menu = menu_crud.create(self.db, fields)
            self.created += 1
        elif self.mode is not MenuSyncModeEnum.INSERT_ONLY:
            if self.mode is MenuSyncModeEnum.FORCE:
                fields.update({"parent_id": parent_id, "sort_order": sort_order, "level": level})
            if menu.name != node.name and self.by_name.get(menu.name) is menu:
                self.by_name.pop(menu.name)
            if menu.path and menu.path != node.path and self.by_path.get(menu.path) is menu:
                self.by_path.pop(menu.path)
            menu_crud.update(self.db, menu, fields)
            self.updated += 1

        self.touched_ids.add(menu.id)
        self.by_name[menu.name] = menu
        if menu.path:
            self.by_path[menu.path] = menu
        return menu

    def _next_sort(self) -> int:
        value = self.auto_sort
        self.auto_sort += 1
        return value

    def remove_untouched(self) -> int:
        orphan_ids = {menu.id for menu in self.existing if menu.id not in self.touched_ids}
        if not orphan_ids:
            return 0
        # 保留下来的子节点若父级被删除，则提升为根
        for menu in menu_crud.list_all(self.db):
            if menu.id not in orphan_ids and menu.parent_id in orphan_ids:
                menu_crud.update(self.db, menu, {"parent_id": None})
        return menu_crud.delete_many(self.db, orphan_ids)


def sync_menus(
    db: Session,
    seed: Optional[SeedInput] = None,
    *,
    remove_orphans: bool = False,
    mode: Union[str, MenuSyncModeEnum] = MenuSyncModeEnum.FORCE,
) -> Dict[str, Any]:
    """执行一次菜单同步，返回统计信息；``remove_orphans`` 会删除种子之外的全部菜单。"""
    try:
        sync_mode = MenuSyncModeEnum(mode)
    except ValueError as exc:
        raise InvariantViolationError(f"不支持的同步模式：{mode}") from exc

    nodes = validate_seed(MENU_TREE if seed is None else seed)

    try:
        with transaction(db):
            run = _SyncRun(db, sync_mode, _seed_names(nodes))
            run.walk(nodes, None, 1)
            removed = run.remove_untouched() if remove_orphans else 0
            menu_crud.recompute_levels(db)
    except Exception:
        logger.exception("[menu-sync] failed (mode=%s)", sync_mode.value)
        raise

    summary = {
        "synced_count": len(run.touched_ids),
        "created": run.created,
        "updated": run.updated,
        "removed": removed,
        "mode": sync_mode.value,
    }
    logger.info(
        "[menu-sync] synced %s menus (created=%s, updated=%s, removed=%s, mode=%s)",
        summary["synced_count"],
        run.created,
        run.updated,
        removed,
        sync_mode.value,
    )
    return summary
