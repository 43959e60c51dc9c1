"""权限解析与个性化授权相关的模型。"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from app.packages.rbac.api.v1.schemas.common import ResponseEnvelope
from app.packages.rbac.api.v1.schemas.menus import MenuTreeNode
from app.packages.rbac.core.enums import OverrideTypeEnum


class EffectivePermissionItem(BaseModel):
    menu_id: int
    menu_name: Optional[str] = None
    menu_title: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int
    level: int
    menu_type: Optional[str] = None
    permission_code: Optional[str] = None
    has_permission: bool
    source: str


class PermissionCheckData(EffectivePermissionItem):
    pass


class PermissionCodeCheckData(BaseModel):
    code: str
    has_permission: bool


class MenuOverrideRequest(BaseModel):
    permission_type: OverrideTypeEnum = Field(..., description="grant 或 deny")


class MenuOverrideItem(BaseModel):
    user_id: int
    menu_id: int
    permission_type: str
    update_time: Optional[str] = None


class MenuOverrideRemoval(BaseModel):
    user_id: int
    menu_id: int


EffectivePermissionListResponse = ResponseEnvelope[List[EffectivePermissionItem]]
UserMenuTreeResponse = ResponseEnvelope[List[MenuTreeNode]]
PermissionCheckResponse = ResponseEnvelope[PermissionCheckData]
PermissionCodeCheckResponse = ResponseEnvelope[PermissionCodeCheckData]
MenuOverrideListResponse = ResponseEnvelope[List[MenuOverrideItem]]
MenuOverrideResponse = ResponseEnvelope[MenuOverrideItem]
MenuOverrideRemovalResponse = ResponseEnvelope[MenuOverrideRemoval]
