"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.rbac.api.v1.endpoints import menus, organizations, permissions, roles, users

api_router = APIRouter()
api_router.include_router(permissions.router)
api_router.include_router(menus.router)
api_router.include_router(roles.router)
api_router.include_router(users.router)
api_router.include_router(organizations.router)
