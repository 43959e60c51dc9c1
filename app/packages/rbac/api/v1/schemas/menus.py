"""菜单管理相关的请求与响应模型。"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from app.packages.rbac.api.v1.schemas.common import ResponseEnvelope
from app.packages.rbac.core.enums import MenuSyncModeEnum, MenuTypeEnum


class MenuFields(BaseModel):
    title: Optional[str] = Field(default=None, max_length=100, description="菜单标题")
    path: Optional[str] = Field(default=None, max_length=255, description="路由地址")
    component: Optional[str] = Field(default=None, max_length=255, description="前端组件标识")
    icon: Optional[str] = Field(default=None, max_length=100, description="图标")
    parent_id: Optional[int] = Field(default=None, description="父级菜单 ID，为空表示根菜单")
    sort_order: Optional[int] = Field(default=None, ge=0, description="同级排序")
    is_hidden: Optional[bool] = Field(default=None, description="是否在导航中隐藏")
    is_disabled: Optional[bool] = Field(default=None, description="是否禁用")
    menu_type: Optional[MenuTypeEnum] = Field(default=None, description="菜单类型")
    permission_code: Optional[str] = Field(default=None, max_length=100, description="权限字符")
    redirect: Optional[str] = Field(default=None, max_length=255, description="重定向地址")
    meta: Optional[Dict[str, Any]] = Field(default=None, description="前端扩展信息")
    description: Optional[str] = Field(default=None, description="备注")


class MenuCreateRequest(MenuFields):
    """新建菜单的请求体。"""

    name: str = Field(..., min_length=1, max_length=100, description="菜单标识（唯一）")
    title: str = Field(..., min_length=1, max_length=100, description="菜单标题")

    @model_validator(mode="after")
    def _trim_fields(self) -> "MenuCreateRequest":
        self.name = self.name.strip()
        self.title = self.title.strip()
        if not self.name:
            raise ValueError("菜单标识不能为空")
        if not self.title:
            raise ValueError("菜单标题不能为空")
        return self


class MenuUpdateRequest(MenuFields):
    """部分更新菜单的请求体，只有显式传入的字段会被修改。"""

    name: Optional[str] = Field(default=None, max_length=100, description="菜单标识")


class MenuSortItem(BaseModel):
    id: int
    sort_order: Optional[int] = Field(default=None, ge=0)
    parent_id: Optional[int] = None


class MenuBatchSortRequest(BaseModel):
    """批量排序/移动菜单；``parent_id`` 缺省表示不调整父级。"""

    items: List[MenuSortItem] = Field(default_factory=list)


class MenuSyncRequest(BaseModel):
    mode: MenuSyncModeEnum = Field(default=MenuSyncModeEnum.FORCE, description="同步模式")
    remove_orphans: bool = Field(default=False, description="是否删除种子之外的菜单")


class MenuItem(BaseModel):
    id: int
    name: str
    title: str
    path: Optional[str] = None
    component: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int
    level: int
    is_hidden: bool
    is_disabled: bool
    is_system: bool
    menu_type: str
    permission_code: Optional[str] = None
    redirect: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    create_time: Optional[str] = None
    update_time: Optional[str] = None


class MenuTreeNode(MenuItem):
    children: List["MenuTreeNode"] = Field(default_factory=list)


class MenuSyncResult(BaseModel):
    synced_count: int
    created: int
    updated: int
    removed: int
    mode: str


class MenuBatchResult(BaseModel):
    updated: int


MenuDetailResponse = ResponseEnvelope[MenuItem]
MenuTreeResponse = ResponseEnvelope[List[MenuTreeNode]]
MenuSyncResponse = ResponseEnvelope[MenuSyncResult]
MenuBatchSortResponse = ResponseEnvelope[MenuBatchResult]
