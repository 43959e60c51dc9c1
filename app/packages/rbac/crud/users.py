"""用户 CRUD：查询用户及其个性化菜单授权。"""

from typing import List, Optional

from sqlalchemy.orm import Session

from app.packages.rbac.crud.base import CRUDBase
from app.packages.rbac.models.user import User
from app.packages.rbac.models.user_menu_override import UserMenuOverride


class CRUDUser(CRUDBase[User]):
    """封装常用的用户查询方法，供业务层复用。"""

    def get_by_username(self, db: Session, username: str) -> Optional[User]:
        return self.query(db).filter(User.username == username).first()


class CRUDUserMenuOverride(CRUDBase[UserMenuOverride]):
    """用户级菜单授权，以 (user_id, menu_id) 为键。"""

    def get_one(self, db: Session, user_id: int, menu_id: int) -> Optional[UserMenuOverride]:
        return (
            self.query(db)
            .filter(UserMenuOverride.user_id == user_id, UserMenuOverride.menu_id == menu_id)
            .first()
        )

    def list_for_user(self, db: Session, user_id: int) -> List[UserMenuOverride]:
        return (
            self.query(db)
            .filter(UserMenuOverride.user_id == user_id)
            .order_by(UserMenuOverride.menu_id.asc())
            .all()
        )

    def upsert(self, db: Session, user_id: int, menu_id: int, permission_type: str) -> UserMenuOverride:
        existing = self.get_one(db, user_id, menu_id)
        if existing is None:
            return self.create(db, {"user_id": user_id, "menu_id": menu_id, "permission_type": permission_type})
        return self.update(db, existing, {"permission_type": permission_type})

    def remove(self, db: Session, user_id: int, menu_id: int) -> bool:
        existing = self.get_one(db, user_id, menu_id)
        if existing is None:
            return False
        self.delete(db, existing)
        return True


user_crud = CRUDUser(User)
user_menu_override_crud = CRUDUserMenuOverride(UserMenuOverride)
