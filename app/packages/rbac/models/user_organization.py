"""用户与组织的归属关系，``is_primary`` 标记用户的主组织。"""

from sqlalchemy import Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.rbac.models.base import Base, TimestampMixin


class UserOrganization(TimestampMixin, Base):
    """以 (user_id, org_id) 为主键；同一用户至多一条记录为主组织，由业务层维护。"""

    __tablename__ = "user_organizations"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    org_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
