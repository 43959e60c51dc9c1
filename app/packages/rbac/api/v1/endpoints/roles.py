"""角色管理相关的路由定义。"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.packages.rbac.api.v1.schemas.common import DeletionResponse, ResponseEnvelope
from app.packages.rbac.api.v1.schemas.roles import (
    RoleCodeResponse,
    RoleCreateRequest,
    RoleDetailResponse,
    RoleListResponse,
    RoleMenusRequest,
    RoleMenusResponse,
    RoleUpdateRequest,
    RoleUsersRequest,
    RoleUsersResponse,
)
from app.packages.rbac.core.constants import PERMISSION_ROLE_MANAGE
from app.packages.rbac.core.dependencies import get_db, require_permission
from app.packages.rbac.models.user import User
from app.packages.rbac.services.role_service import role_service

router = APIRouter(prefix="/roles", tags=["roles"])

require_role_manage = require_permission(PERMISSION_ROLE_MANAGE)


@router.get("", response_model=RoleListResponse)
def list_roles(
    keyword: Optional[str] = Query(None, description="名称或编码模糊匹配"),
    page: int = Query(1, ge=1, description="页码，从 1 开始"),
    page_size: int = Query(20, ge=1, le=200, description="每页数量"),
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleListResponse:
    return role_service.list_roles(db, keyword=keyword, page=page, page_size=page_size)


@router.get("/suggest-code", response_model=RoleCodeResponse)
def suggest_role_code(
    name: str = Query(..., min_length=1, description="角色名称"),
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleCodeResponse:
    return role_service.suggest_code(db, name=name)


@router.get("/{role_id}", response_model=RoleDetailResponse)
def get_role_detail(
    role_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleDetailResponse:
    return role_service.get_detail(db, role_id=role_id)


@router.post("", response_model=RoleDetailResponse)
def create_role(
    payload: RoleCreateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleDetailResponse:
    return role_service.create(
        db,
        name=payload.name,
        code=payload.code,
        description=payload.description,
        sort_order=payload.sort_order,
        is_disabled=payload.is_disabled,
        menu_ids=payload.menu_ids,
    )


@router.put("/{role_id}", response_model=RoleDetailResponse)
def update_role(
    role_id: int,
    payload: RoleUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleDetailResponse:
    return role_service.update(db, role_id=role_id, payload=payload.model_dump(exclude_unset=True))


@router.delete("/{role_id}", response_model=DeletionResponse)
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> DeletionResponse:
    return role_service.delete(db, role_id=role_id)


@router.get("/{role_id}/menus", response_model=RoleMenusResponse)
def get_role_menus(
    role_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleMenusResponse:
    return role_service.get_role_menus(db, role_id=role_id)


@router.put("/{role_id}/menus", response_model=RoleMenusResponse)
def set_role_menus(
    role_id: int,
    payload: RoleMenusRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleMenusResponse:
    return role_service.set_role_menus(db, role_id=role_id, menu_ids=payload.menu_ids)


@router.get("/{role_id}/users", response_model=RoleUsersResponse)
def list_role_users(
    role_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> RoleUsersResponse:
    return role_service.list_role_users(db, role_id=role_id)


@router.post("/{role_id}/users", response_model=ResponseEnvelope[dict[str, Any]])
def add_role_users(
    role_id: int,
    payload: RoleUsersRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> ResponseEnvelope[dict[str, Any]]:
    return role_service.add_users_to_role(db, role_id=role_id, user_ids=payload.user_ids)


@router.delete("/{role_id}/users/{user_id}", response_model=ResponseEnvelope[dict[str, Any]])
def remove_role_user(
    role_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_role_manage),
) -> ResponseEnvelope[dict[str, Any]]:
    return role_service.remove_user_from_role(db, role_id=role_id, user_id=user_id)
