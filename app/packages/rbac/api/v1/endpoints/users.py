"""用户维度的角色分配、组织归属与个性化菜单授权路由。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.rbac.api.v1.schemas.organizations import UserOrganizationListResponse
from app.packages.rbac.api.v1.schemas.permissions import (
    MenuOverrideListResponse,
    MenuOverrideRemovalResponse,
    MenuOverrideRequest,
    MenuOverrideResponse,
)
from app.packages.rbac.api.v1.schemas.roles import UserRoleListResponse, UserRolesRequest, UserRolesResponse
from app.packages.rbac.core.constants import PERMISSION_ORG_MANAGE, PERMISSION_ROLE_MANAGE
from app.packages.rbac.core.dependencies import get_db, require_permission
from app.packages.rbac.models.user import User
from app.packages.rbac.services.organization_service import organization_service
from app.packages.rbac.services.permission_service import permission_service
from app.packages.rbac.services.role_service import role_service

router = APIRouter(prefix="/users", tags=["users"])

require_role_manage = require_permission(PERMISSION_ROLE_MANAGE)
require_org_manage = require_permission(PERMISSION_ORG_MANAGE)


@router.get("/{user_id}/roles", response_model=UserRoleListResponse)
def get_user_roles(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> UserRoleListResponse:
    """返回用户的全局角色。"""
    return role_service.get_user_roles(db, user_id=user_id)


@router.put("/{user_id}/roles", response_model=UserRolesResponse)
def set_user_roles(
    user_id: int,
    payload: UserRolesRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> UserRolesResponse:
    """覆盖式设置用户的全局角色。"""
    return role_service.set_user_roles(db, user_id=user_id, role_ids=payload.role_ids)


@router.get("/{user_id}/organizations", response_model=UserOrganizationListResponse)
def list_user_organizations(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> UserOrganizationListResponse:
    """返回用户归属的组织，主组织排在最前。"""
    return organization_service.list_user_organizations(db, user_id=user_id)


@router.get("/{user_id}/organizations/{org_id}/roles", response_model=UserRoleListResponse)
def get_user_roles_in_org(
    user_id: int,
    org_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> UserRoleListResponse:
    return role_service.get_user_roles(db, user_id=user_id, org_id=org_id)


@router.put("/{user_id}/organizations/{org_id}/roles", response_model=UserRolesResponse)
def set_user_roles_in_org(
    user_id: int,
    org_id: int,
    payload: UserRolesRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> UserRolesResponse:
    """覆盖式设置用户在指定组织内的角色。"""
    return role_service.set_user_roles_in_org(db, user_id=user_id, org_id=org_id, role_ids=payload.role_ids)


@router.get("/{user_id}/menu-overrides", response_model=MenuOverrideListResponse)
def list_menu_overrides(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> MenuOverrideListResponse:
    return permission_service.list_overrides(db, user_id=user_id)


@router.put("/{user_id}/menu-overrides/{menu_id}", response_model=MenuOverrideResponse)
def set_menu_override(
    user_id: int,
    menu_id: int,
    payload: MenuOverrideRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> MenuOverrideResponse:
    return permission_service.set_override(
        db,
        user_id=user_id,
        menu_id=menu_id,
        permission_type=payload.permission_type.value,
    )


@router.delete("/{user_id}/menu-overrides/{menu_id}", response_model=MenuOverrideRemovalResponse)
def remove_menu_override(
    user_id: int,
    menu_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> MenuOverrideRemovalResponse:
    return permission_service.remove_override(db, user_id=user_id, menu_id=menu_id)
