"""角色 CRUD：角色实体、角色菜单授权以及用户角色绑定（全局/组织）的读写。"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.orm import Session

from app.packages.rbac.crud.base import CRUDBase
from app.packages.rbac.models.base import role_menus, user_org_roles, user_roles
from app.packages.rbac.models.role import Role


def _unique_ids(ids: Optional[Iterable[int]]) -> List[int]:
    seen: set[int] = set()
    ordered: List[int] = []
    for item in ids or []:
        if item is None:
            continue
        value = int(item)
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


class CRUDRole(CRUDBase[Role]):
    """提供角色实体的便捷查询方法。"""

    def get_by_name(self, db: Session, name: str) -> Optional[Role]:
        return self.query(db).filter(Role.name == name).first()

    def get_by_code(self, db: Session, code: str) -> Optional[Role]:
        return self.query(db).filter(func.lower(Role.code) == code.strip().lower()).first()

    def list_all(self, db: Session) -> List[Role]:
        return self.query(db).order_by(Role.sort_order.asc(), Role.id.asc()).all()

    def list_with_filters(
        self,
        db: Session,
        *,
        keyword: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[list[Role], int]:
        """按名称/编码模糊查询并返回总数。"""
        query = self.query(db)
        if keyword and keyword.strip():
            pattern = f"%{keyword.strip()}%"
            query = query.filter(or_(Role.name.ilike(pattern), Role.code.ilike(pattern)))
        total = query.count()
        items = (
            query.order_by(Role.sort_order.asc(), Role.id.asc())
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    def next_sort_order(self, db: Session) -> int:
        current = db.query(func.coalesce(func.max(Role.sort_order), 0)).scalar()
        return int(current or 0) + 1

    # -----------------------------
    # 角色 → 菜单
    # -----------------------------

    def list_menu_ids(self, db: Session, role_id: int) -> List[int]:
        rows = db.execute(
            select(role_menus.c.menu_id).where(role_menus.c.role_id == role_id).order_by(role_menus.c.menu_id)
        )
        return [row[0] for row in rows]

    def list_menu_ids_for_roles(self, db: Session, role_ids: Iterable[int]) -> set[int]:
        ids = _unique_ids(role_ids)
        if not ids:
            return set()
        rows = db.execute(select(role_menus.c.menu_id).where(role_menus.c.role_id.in_(ids)).distinct())
        return {row[0] for row in rows}

    def replace_menus(self, db: Session, role_id: int, menu_ids: Iterable[int]) -> List[int]:
        """覆盖式写入角色的菜单授权。"""
        ids = _unique_ids(menu_ids)
        db.execute(delete(role_menus).where(role_menus.c.role_id == role_id))
        if ids:
            db.execute(insert(role_menus), [{"role_id": role_id, "menu_id": menu_id} for menu_id in ids])
        db.flush()
        return sorted(ids)

    # -----------------------------
    # 用户 → 角色
    # -----------------------------

    def list_user_roles(self, db: Session, user_id: int, org_id: Optional[int] = None) -> List[Role]:
        """返回用户持有的角色：未指定组织时取全局绑定，否则取该组织内的绑定。"""
        if org_id is None:
            query = self.query(db).join(user_roles, user_roles.c.role_id == Role.id).filter(
                user_roles.c.user_id == user_id
            )
        else:
            query = self.query(db).join(user_org_roles, user_org_roles.c.role_id == Role.id).filter(
                user_org_roles.c.user_id == user_id,
                user_org_roles.c.org_id == org_id,
            )
        return query.order_by(Role.sort_order.asc(), Role.id.asc()).distinct().all()

    def replace_user_roles(self, db: Session, user_id: int, role_ids: Iterable[int]) -> List[int]:
        ids = _unique_ids(role_ids)
        db.execute(delete(user_roles).where(user_roles.c.user_id == user_id))
        if ids:
            db.execute(insert(user_roles), [{"user_id": user_id, "role_id": role_id} for role_id in ids])
        db.flush()
        return sorted(ids)

    def replace_user_roles_in_org(self, db: Session, user_id: int, org_id: int, role_ids: Iterable[int]) -> List[int]:
        ids = _unique_ids(role_ids)
        db.execute(
            delete(user_org_roles).where(user_org_roles.c.user_id == user_id, user_org_roles.c.org_id == org_id)
        )
        if ids:
            db.execute(
                insert(user_org_roles),
                [{"user_id": user_id, "org_id": org_id, "role_id": role_id} for role_id in ids],
            )
        db.flush()
        return sorted(ids)

    def list_holder_ids(self, db: Session, role_id: int) -> List[int]:
        """返回全局持有该角色的用户 ID。"""
        rows = db.execute(
            select(user_roles.c.user_id).where(user_roles.c.role_id == role_id).order_by(user_roles.c.user_id)
        )
        return [row[0] for row in rows]

    def count_holders(self, db: Session, role_id: int) -> int:
        """统计持有该角色的绑定数量（全局 + 各组织）。"""
        global_count = db.execute(
            select(func.count()).select_from(user_roles).where(user_roles.c.role_id == role_id)
        ).scalar_one()
        org_count = db.execute(
            select(func.count()).select_from(user_org_roles).where(user_org_roles.c.role_id == role_id)
        ).scalar_one()
        return int(global_count) + int(org_count)


role_crud = CRUDRole(Role)
