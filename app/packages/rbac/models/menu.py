"""菜单模型：描述控制台中的导航节点与操作按钮。"""

from typing import Any, List, Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.packages.rbac.core.enums import MenuTypeEnum
from app.packages.rbac.models.base import Base, TimestampMixin, role_menus


class Menu(TimestampMixin, Base):
    """菜单实体：以 `parent_id` 构成邻接表树，`level` 在写入时按父链推导。

    - `name` 是稳定的机器键，菜单种子同步据此匹配；
    - `is_system` 为真时禁止删除与改名；
    - `permission_code` 供细粒度操作鉴权使用，不要求唯一。
    """

    __tablename__ = "menus"
    __table_args__ = (
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="no_self_parent"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(100))
    path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    component: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    menu_type: Mapped[str] = mapped_column(String(20), default=MenuTypeEnum.MENU.value, nullable=False)
    permission_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    redirect: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    roles: Mapped[List["Role"]] = relationship(
        "Role",
        secondary=role_menus,
        back_populates="menus",
    )
