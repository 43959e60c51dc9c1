"""用户模型：只保留权限解析所需的字段，账号体系由外部服务维护。"""

from typing import List, Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.packages.rbac.core.constants import DEFAULT_USER_ROLE_CODE
from app.packages.rbac.models.base import Base, TimestampMixin, user_roles


class User(TimestampMixin, Base):
    """用户实体。

    `role` 是历史遗留的全局角色字段（如 ``admin``），与 `user_roles`/`user_org_roles`
    两张绑定表共同构成权限来源。
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    nickname: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(50), default=DEFAULT_USER_ROLE_CODE, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    roles: Mapped[List["Role"]] = relationship(
        "Role",
        secondary=user_roles,
        back_populates="users",
    )
