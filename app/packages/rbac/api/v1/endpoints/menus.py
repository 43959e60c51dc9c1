"""菜单管理相关的路由定义。"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.rbac.api.v1.schemas.common import DeletionResponse
from app.packages.rbac.api.v1.schemas.menus import (
    MenuBatchSortRequest,
    MenuBatchSortResponse,
    MenuCreateRequest,
    MenuDetailResponse,
    MenuSyncRequest,
    MenuSyncResponse,
    MenuTreeResponse,
    MenuUpdateRequest,
)
from app.packages.rbac.core.constants import HTTP_STATUS_OK, PERMISSION_MENU_MANAGE
from app.packages.rbac.core.dependencies import get_db, require_permission
from app.packages.rbac.core.logger import logger
from app.packages.rbac.core.responses import create_response
from app.packages.rbac.models.user import User
from app.packages.rbac.services.menu_service import menu_service
from app.packages.rbac.services.menu_sync_service import sync_menus

router = APIRouter(prefix="/menus", tags=["menus"])

require_menu_manage = require_permission(PERMISSION_MENU_MANAGE)


@router.get("/tree", response_model=MenuTreeResponse)
def get_menu_tree(
    db: Session = Depends(get_db),
    _: User = Depends(require_menu_manage),
) -> MenuTreeResponse:
    """返回完整菜单树（含禁用菜单），供菜单管理页使用。"""
    return menu_service.list_tree(db)


@router.post("/sync", response_model=MenuSyncResponse)
def sync_menu_seed(
    payload: MenuSyncRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_menu_manage),
) -> MenuSyncResponse:
    """按静态菜单定义重新同步菜单表。"""
    logger.info(
        "User %s triggered menu sync (mode=%s, remove_orphans=%s)",
        current_user.id,
        payload.mode.value,
        payload.remove_orphans,
    )
    summary = sync_menus(db, mode=payload.mode, remove_orphans=payload.remove_orphans)
    return create_response("菜单同步完成", summary, HTTP_STATUS_OK)


@router.put("/batch-sort", response_model=MenuBatchSortResponse)
def batch_sort_menus(
    payload: MenuBatchSortRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_menu_manage),
) -> MenuBatchSortResponse:
    items = [item.model_dump(exclude_unset=True) for item in payload.items]
    return menu_service.batch_sort(db, items=items)


@router.get("/{menu_id}", response_model=MenuDetailResponse)
def get_menu_detail(
    menu_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_menu_manage),
) -> MenuDetailResponse:
    return menu_service.get_detail(db, menu_id=menu_id)


@router.post("", response_model=MenuDetailResponse)
def create_menu(
    payload: MenuCreateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_menu_manage),
) -> MenuDetailResponse:
    return menu_service.create(db, payload=payload.model_dump(mode="json", exclude_none=True))


@router.put("/{menu_id}", response_model=MenuDetailResponse)
def update_menu(
    menu_id: int,
    payload: MenuUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_menu_manage),
) -> MenuDetailResponse:
    return menu_service.update(db, menu_id=menu_id, payload=payload.model_dump(mode="json", exclude_unset=True))


@router.delete("/{menu_id}", response_model=DeletionResponse)
def delete_menu(
    menu_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_menu_manage),
) -> DeletionResponse:
    return menu_service.delete(db, menu_id=menu_id)
