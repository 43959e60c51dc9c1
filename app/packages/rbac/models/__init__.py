"""模型包初始化，便于统一导入 ORM 实体并触发模型注册。"""

from app.packages.rbac.models.menu import Menu
from app.packages.rbac.models.organization import Organization
from app.packages.rbac.models.role import Role
from app.packages.rbac.models.user import User
from app.packages.rbac.models.user_menu_override import UserMenuOverride
from app.packages.rbac.models.user_organization import UserOrganization

__all__ = [
    "Menu",
    "Organization",
    "Role",
    "User",
    "UserMenuOverride",
    "UserOrganization",
]
