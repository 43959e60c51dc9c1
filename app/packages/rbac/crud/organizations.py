"""组织 CRUD：管理组织及用户归属相关的数据库操作。"""

from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from app.packages.rbac.crud.base import CRUDBase
from app.packages.rbac.models.organization import Organization
from app.packages.rbac.models.user import User
from app.packages.rbac.models.user_organization import UserOrganization


class CRUDOrganization(CRUDBase[Organization]):
    """提供组织实体的便捷查询方法。"""

    def list_all(self, db: Session, *, include_inactive: bool = True) -> List[Organization]:
        """获取全部组织，按 sort_order,id 排序。"""
        query = self.query(db)
        if not include_inactive:
            query = query.filter(Organization.is_active.is_(True))
        return query.order_by(Organization.sort_order.asc(), Organization.id.asc()).all()

    def list_with_filters(
        self,
        db: Session,
        *,
        search: Optional[str] = None,
        parent_id: Optional[int] = None,
        filter_parent: bool = False,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Organization], int]:
        query = self.query(db)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Organization.name.ilike(pattern), Organization.code.ilike(pattern)))
        if filter_parent:
            if parent_id is None:
                query = query.filter(Organization.parent_id.is_(None))
            else:
                query = query.filter(Organization.parent_id == parent_id)
        if not include_inactive:
            query = query.filter(Organization.is_active.is_(True))
        total = query.count()
        items = query.order_by(Organization.id.asc()).offset(max(skip, 0)).limit(max(limit, 1)).all()
        return items, total

    def has_children(self, db: Session, org_id: int) -> bool:
        return (
            self.query(db).with_entities(Organization.id).filter(Organization.parent_id == org_id).first()
            is not None
        )


class CRUDUserOrganization(CRUDBase[UserOrganization]):
    """用户与组织的归属关系，以 (user_id, org_id) 为键。"""

    def get_one(self, db: Session, user_id: int, org_id: int) -> Optional[UserOrganization]:
        return (
            self.query(db)
            .filter(UserOrganization.user_id == user_id, UserOrganization.org_id == org_id)
            .first()
        )

    def list_for_user(self, db: Session, user_id: int) -> List[UserOrganization]:
        """用户的全部归属，主组织排在最前。"""
        return (
            self.query(db)
            .filter(UserOrganization.user_id == user_id)
            .order_by(UserOrganization.is_primary.desc(), UserOrganization.org_id.asc())
            .all()
        )

    def get_primary_org_id(self, db: Session, user_id: int) -> Optional[int]:
        """主组织 ID；没有标记主组织时取最早归属的组织，没有任何归属返回 ``None``。"""
        memberships = self.list_for_user(db, user_id)
        return memberships[0].org_id if memberships else None

    def list_members(
        self,
        db: Session,
        org_ids: Iterable[int],
        *,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[User], int]:
        """列出归属于任一组织的用户（去重），按用户 ID 排序。"""
        member_ids = select(UserOrganization.user_id).where(UserOrganization.org_id.in_(list(org_ids)))
        query = db.query(User).filter(User.id.in_(member_ids))
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(User.username.ilike(pattern), User.nickname.ilike(pattern)))
        total = query.count()
        items = query.order_by(User.id.asc()).offset(max(skip, 0)).limit(max(limit, 1)).all()
        return items, total

    def add_members(self, db: Session, org_id: int, user_ids: Iterable[int]) -> List[int]:
        """批量加入组织，已存在的归属保持不变，返回新加入的用户 ID。"""
        existing = {
            row[0]
            for row in db.execute(select(UserOrganization.user_id).where(UserOrganization.org_id == org_id))
        }
        added = sorted({int(user_id) for user_id in user_ids} - existing)
        for user_id in added:
            db.add(UserOrganization(user_id=user_id, org_id=org_id, is_primary=False))
        db.flush()
        return added

    def set_primary(self, db: Session, user_id: int, org_id: int) -> UserOrganization:
        """把 ``org_id`` 设为用户的唯一主组织，归属不存在时一并创建。"""
        target = None
        for membership in self.list_for_user(db, user_id):
            if membership.org_id == org_id:
                target = membership
            membership.is_primary = membership.org_id == org_id
        if target is None:
            return self.create(db, {"user_id": user_id, "org_id": org_id, "is_primary": True})
        db.flush()
        return target

    def remove_for_org(self, db: Session, org_id: int) -> int:
        removed = db.execute(delete(UserOrganization).where(UserOrganization.org_id == org_id)).rowcount
        db.flush()
        return removed or 0


organization_crud = CRUDOrganization(Organization)
user_organization_crud = CRUDUserOrganization(UserOrganization)
