"""组织管理路由定义。"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.packages.rbac.api.v1.schemas.common import DeletionResponse
from app.packages.rbac.api.v1.schemas.organizations import (
    OrganizationBatchRequest,
    OrganizationBatchResponse,
    OrganizationCreateRequest,
    OrganizationDetailResponse,
    OrganizationListResponse,
    OrganizationMemberListResponse,
    OrganizationMemberMoveResponse,
    OrganizationMembersAddResponse,
    OrganizationMembershipResponse,
    OrganizationMembersRequest,
    OrganizationMoveRequest,
    OrganizationTreeResponse,
    OrganizationUpdateRequest,
)
from app.packages.rbac.core.constants import PERMISSION_ORG_MANAGE
from app.packages.rbac.core.dependencies import get_current_user, get_db, require_permission
from app.packages.rbac.models.user import User
from app.packages.rbac.services.organization_service import organization_service

router = APIRouter(prefix="/organizations", tags=["organizations"])

require_org_manage = require_permission(PERMISSION_ORG_MANAGE)


@router.get("", response_model=OrganizationListResponse)
def list_organizations(
    search: Optional[str] = Query(None, description="名称或编码模糊匹配"),
    include_inactive: bool = Query(False, description="是否包含停用组织"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationListResponse:
    return organization_service.list_organizations(
        db,
        search=search,
        include_inactive=include_inactive,
        page=page,
        page_size=page_size,
    )


@router.get("/tree", response_model=OrganizationTreeResponse)
def list_organizations_tree(
    include_inactive: bool = Query(True, description="是否包含停用组织"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> OrganizationTreeResponse:
    """以树形结构返回组织机构（包含 parent_id / sort_order / children）。"""
    return organization_service.list_tree(db, include_inactive=include_inactive)


@router.put("/batch", response_model=OrganizationBatchResponse)
def batch_reparent_organizations(
    payload: OrganizationBatchRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationBatchResponse:
    items = [item.model_dump(exclude_unset=True) for item in payload.updates]
    return organization_service.batch_reparent(db, items=items)


@router.get("/{org_id}", response_model=OrganizationDetailResponse)
def get_organization(
    org_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationDetailResponse:
    return organization_service.get_detail(db, org_id=org_id)


@router.post("", response_model=OrganizationDetailResponse)
def create_organization(
    payload: OrganizationCreateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationDetailResponse:
    return organization_service.create(
        db,
        name=payload.name,
        code=payload.code,
        parent_id=payload.parent_id,
        sort_order=payload.sort_order,
        is_active=payload.is_active,
    )


@router.put("/{org_id}", response_model=OrganizationDetailResponse)
def update_organization(
    org_id: int,
    payload: OrganizationUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationDetailResponse:
    return organization_service.update(db, org_id=org_id, payload=payload.model_dump(exclude_unset=True))


@router.put("/{org_id}/move", response_model=OrganizationDetailResponse)
def move_organization(
    org_id: int,
    payload: OrganizationMoveRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationDetailResponse:
    return organization_service.move(db, org_id=org_id, parent_id=payload.parent_id)


@router.delete("/{org_id}", response_model=DeletionResponse)
def delete_organization(
    org_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> DeletionResponse:
    return organization_service.delete(db, org_id=org_id)


@router.get("/{org_id}/users", response_model=OrganizationMemberListResponse)
def list_organization_members(
    org_id: int,
    search: Optional[str] = Query(None, description="用户名或昵称模糊匹配"),
    include_children: bool = Query(False, description="是否包含子孙组织的成员"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationMemberListResponse:
    return organization_service.list_members(
        db,
        org_id=org_id,
        search=search,
        include_children=include_children,
        page=page,
        page_size=page_size,
    )


@router.post("/{org_id}/users", response_model=OrganizationMembersAddResponse)
def add_organization_members(
    org_id: int,
    payload: OrganizationMembersRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationMembersAddResponse:
    return organization_service.add_members(db, org_id=org_id, user_ids=payload.user_ids)


@router.delete("/{org_id}/users/{user_id}", response_model=OrganizationMembershipResponse)
def remove_organization_member(
    org_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationMembershipResponse:
    """移除成员；不能移除用户的主组织。"""
    return organization_service.remove_member(db, org_id=org_id, user_id=user_id)


@router.put("/{org_id}/users/{user_id}/primary", response_model=OrganizationMembershipResponse)
def set_primary_organization(
    org_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationMembershipResponse:
    return organization_service.set_primary(db, org_id=org_id, user_id=user_id)


@router.put("/{from_org_id}/users/{user_id}/move/{to_org_id}", response_model=OrganizationMemberMoveResponse)
def move_organization_member(
    from_org_id: int,
    user_id: int,
    to_org_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_org_manage),
) -> OrganizationMemberMoveResponse:
    """把用户调到另一个组织，目标组织成为其主组织。"""
    return organization_service.move_member(db, from_org_id=from_org_id, to_org_id=to_org_id, user_id=user_id)
