"""用户级菜单授权：针对单个用户、单个菜单的显式授予或拒绝。"""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.rbac.core.enums import OverrideTypeEnum
from app.packages.rbac.models.base import Base, TimestampMixin


class UserMenuOverride(TimestampMixin, Base):
    """以 (user_id, menu_id) 为主键，重复写入即覆盖。"""

    __tablename__ = "user_menu_overrides"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    menu_id: Mapped[int] = mapped_column(ForeignKey("menus.id", ondelete="CASCADE"), primary_key=True, index=True)
    permission_type: Mapped[str] = mapped_column(String(10), default=OverrideTypeEnum.GRANT.value, nullable=False)
