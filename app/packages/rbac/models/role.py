"""角色模型：可分配给用户的菜单授权集合。"""

from typing import List, Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.packages.rbac.models.base import Base, TimestampMixin, role_menus, user_roles


class Role(TimestampMixin, Base):
    """角色实体，通过 `role_menus` 关联菜单，通过 `user_roles` 关联全局用户。

    组织作用域的绑定保存在 `user_org_roles`，由 CRUD 层直接读写，不在此映射。
    """

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    menus: Mapped[List["Menu"]] = relationship(
        "Menu",
        secondary=role_menus,
        back_populates="roles",
    )
    users: Mapped[List["User"]] = relationship(
        "User",
        secondary=user_roles,
        back_populates="roles",
    )
