"""组织模型：角色分配的作用域单元。"""

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.rbac.models.base import Base, TimestampMixin


class Organization(TimestampMixin, Base):
    """组织实体，支持层级结构：通过 `parent_id` 形成树。

    - `code` 全局唯一，缺省时由名称派生并以数字后缀消歧；
    - 防止自引用（`parent_id != id`），更深的环路由业务层在写入前校验。
    """

    __tablename__ = "organizations"
    __table_args__ = (
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="no_self_parent"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), index=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
