"""权限查询路由：当前用户的可访问菜单，以及管理员查看任意用户的解析结果。"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.packages.rbac.api.v1.schemas.permissions import (
    EffectivePermissionListResponse,
    PermissionCheckResponse,
    PermissionCodeCheckResponse,
    UserMenuTreeResponse,
)
from app.packages.rbac.core.constants import HTTP_STATUS_OK, PERMISSION_ROLE_MANAGE
from app.packages.rbac.core.dependencies import get_current_user, get_db, require_permission
from app.packages.rbac.core.responses import create_response
from app.packages.rbac.models.user import User
from app.packages.rbac.services.permission_service import permission_service

router = APIRouter(prefix="/permissions", tags=["permissions"])

require_role_manage = require_permission(PERMISSION_ROLE_MANAGE)


def _menus_response(db: Session, user_id: int, org_id: Optional[int]) -> dict:
    items = permission_service.resolve_user_menu_permissions(db, user_id, org_id)
    return create_response("获取菜单权限成功", [item.to_dict() for item in items], HTTP_STATUS_OK)


def _tree_response(db: Session, user_id: int, org_id: Optional[int], include_ancestors: Optional[bool]) -> dict:
    tree = permission_service.get_user_menu_tree(db, user_id, org_id, auto_include_ancestors=include_ancestors)
    return create_response("获取菜单树成功", tree, HTTP_STATUS_OK)


@router.get("/me/menus", response_model=EffectivePermissionListResponse)
def get_my_menu_permissions(
    org_id: Optional[int] = Query(None, description="组织作用域"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> EffectivePermissionListResponse:
    return _menus_response(db, current_user.id, org_id)


@router.get("/me/menu-tree", response_model=UserMenuTreeResponse)
def get_my_menu_tree(
    org_id: Optional[int] = Query(None, description="组织作用域"),
    include_ancestors: Optional[bool] = Query(None, description="是否自动补齐被授权菜单的祖先"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserMenuTreeResponse:
    return _tree_response(db, current_user.id, org_id, include_ancestors)


@router.get("/me/check", response_model=PermissionCheckResponse)
def check_my_menu_permission(
    menu_id: int = Query(..., description="菜单 ID"),
    org_id: Optional[int] = Query(None, description="组织作用域"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PermissionCheckResponse:
    decision = permission_service.check_single_menu_permission(db, current_user.id, org_id, menu_id)
    return create_response("权限校验完成", decision.to_dict(), HTTP_STATUS_OK)


@router.get("/me/check-code", response_model=PermissionCodeCheckResponse)
def check_my_permission_code(
    code: str = Query(..., min_length=1, description="权限字符"),
    org_id: Optional[int] = Query(None, description="组织作用域"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PermissionCodeCheckResponse:
    allowed = permission_service.check_permission_code(db, current_user.id, org_id, code)
    return create_response("权限校验完成", {"code": code, "has_permission": allowed}, HTTP_STATUS_OK)


@router.get("/users/{user_id}/menus", response_model=EffectivePermissionListResponse)
def get_user_menu_permissions(
    user_id: int,
    org_id: Optional[int] = Query(None, description="组织作用域"),
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> EffectivePermissionListResponse:
    return _menus_response(db, user_id, org_id)


@router.get("/users/{user_id}/menu-tree", response_model=UserMenuTreeResponse)
def get_user_menu_tree(
    user_id: int,
    org_id: Optional[int] = Query(None, description="组织作用域"),
    include_ancestors: Optional[bool] = Query(None, description="是否自动补齐被授权菜单的祖先"),
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> UserMenuTreeResponse:
    return _tree_response(db, user_id, org_id, include_ancestors)


@router.get("/users/{user_id}/check", response_model=PermissionCheckResponse)
def check_user_menu_permission(
    user_id: int,
    menu_id: int = Query(..., description="菜单 ID"),
    org_id: Optional[int] = Query(None, description="组织作用域"),
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> PermissionCheckResponse:
    decision = permission_service.check_single_menu_permission(db, user_id, org_id, menu_id)
    return create_response("权限校验完成", decision.to_dict(), HTTP_STATUS_OK)
