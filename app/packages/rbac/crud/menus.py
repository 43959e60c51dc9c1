"""菜单的数据库访问封装。"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.packages.rbac.crud.base import CRUDBase
from app.packages.rbac.models.base import role_menus
from app.packages.rbac.models.menu import Menu
from app.packages.rbac.models.user_menu_override import UserMenuOverride


class CRUDMenu(CRUDBase[Menu]):
    """提供菜单的便捷查询方法。"""

    def list_all(self, db: Session, *, include_disabled: bool = True) -> List[Menu]:
        """返回全部菜单，按照排序值与主键排序。"""
        query = self.query(db)
        if not include_disabled:
            query = query.filter(self.model.is_disabled.is_(False))
        return query.order_by(self.model.sort_order, self.model.id).all()

    def get_by_name(self, db: Session, name: str, *, exclude_id: Optional[int] = None) -> Optional[Menu]:
        query = self.query(db).filter(self.model.name == name)
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        return query.first()

    def list_by_permission_code(self, db: Session, permission_code: str) -> List[Menu]:
        """按权限字符检索启用的菜单（同一权限字符可挂在多个节点上）。"""
        return (
            self.query(db)
            .filter(self.model.permission_code == permission_code, self.model.is_disabled.is_(False))
            .order_by(self.model.sort_order, self.model.id)
            .all()
        )

    def has_children(self, db: Session, menu_id: int) -> bool:
        return self.query(db).with_entities(self.model.id).filter(self.model.parent_id == menu_id).first() is not None

    def delete_many(self, db: Session, menu_ids: Iterable[int]) -> int:
        """物理删除一组菜单，连同其角色授权与用户级授权记录。"""
        ids = sorted({int(item) for item in menu_ids if item is not None})
        if not ids:
            return 0
        db.execute(delete(role_menus).where(role_menus.c.menu_id.in_(ids)))
        db.execute(delete(UserMenuOverride).where(UserMenuOverride.menu_id.in_(ids)))
        deleted = self.query(db).filter(self.model.id.in_(ids)).delete(synchronize_session=False)
        db.flush()
        return deleted

    def recompute_levels(self, db: Session) -> int:
        """按父链重新推导所有菜单的层级，返回发生变化的节点数量。

        父级缺失的节点视为根（level=1）；处于环路中的节点不会被访问到，保持原值。
        """
        items = self.list_all(db)
        by_parent: Dict[Optional[int], List[Menu]] = {}
        known = {item.id for item in items}
        for item in items:
            key = item.parent_id if item.parent_id in known else None
            by_parent.setdefault(key, []).append(item)

        changed = 0
        stack = [(root, 1) for root in by_parent.get(None, [])]
        while stack:
            node, level = stack.pop()
            if node.level != level:
                node.level = level
                changed += 1
            stack.extend((child, level + 1) for child in by_parent.get(node.id, []))
        if changed:
            db.flush()
        return changed


menu_crud = CRUDMenu(Menu)
