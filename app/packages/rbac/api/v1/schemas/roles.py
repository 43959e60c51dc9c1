"""角色管理相关的请求与响应模型。"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.packages.rbac.api.v1.schemas.common import PageData, ResponseEnvelope


def _unique(values: List[int]) -> List[int]:
    seen = set()
    ordered = []
    for item in values:
        if item in seen:
            continue
        seen.add(item)
        ordered.append(item)
    return ordered


class RoleCreateRequest(BaseModel):
    """新建角色的请求体；``code`` 缺省时由名称派生。"""

    name: str = Field(..., min_length=1, max_length=50, description="角色名称")
    code: Optional[str] = Field(default=None, max_length=100, description="角色编码")
    description: Optional[str] = Field(default=None, max_length=255, description="描述")
    sort_order: Optional[int] = Field(default=None, ge=0, description="显示顺序，缺省为最大值 + 1")
    is_disabled: bool = Field(default=False, description="是否禁用")
    menu_ids: List[int] = Field(default_factory=list, description="授权菜单 ID 集合")

    @model_validator(mode="after")
    def _trim_fields(self) -> "RoleCreateRequest":
        self.name = self.name.strip()
        if not self.name:
            raise ValueError("角色名称不能为空")
        if self.code is not None:
            self.code = self.code.strip() or None
        self.menu_ids = _unique(self.menu_ids)
        return self


class RoleUpdateRequest(BaseModel):
    """部分更新角色，只有显式传入的字段会被修改。"""

    name: Optional[str] = Field(default=None, max_length=50)
    code: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=255)
    sort_order: Optional[int] = Field(default=None, ge=0)
    is_disabled: Optional[bool] = None
    menu_ids: Optional[List[int]] = None


class RoleMenusRequest(BaseModel):
    menu_ids: List[int] = Field(default_factory=list, description="授权菜单 ID 集合（覆盖式）")


class RoleUsersRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1, description="用户 ID 集合")


class UserRolesRequest(BaseModel):
    role_ids: List[int] = Field(default_factory=list, description="角色 ID 集合（覆盖式）")


class RoleItem(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    sort_order: int
    is_system: bool
    is_disabled: bool
    create_time: Optional[str] = None
    update_time: Optional[str] = None


class RoleDetail(RoleItem):
    menu_ids: List[int] = Field(default_factory=list)


class RoleMenusData(BaseModel):
    role_id: int
    menu_ids: List[int]


class RoleUserItem(BaseModel):
    id: int
    username: str
    nickname: Optional[str] = None
    role: str
    is_active: bool


class RoleCodeSuggestion(BaseModel):
    code: str


class UserRolesData(BaseModel):
    user_id: int
    org_id: Optional[int] = None
    role_ids: List[int]


RoleListResponse = ResponseEnvelope[PageData[RoleItem]]
RoleDetailResponse = ResponseEnvelope[RoleDetail]
RoleMenusResponse = ResponseEnvelope[RoleMenusData]
RoleUsersResponse = ResponseEnvelope[List[RoleUserItem]]
RoleCodeResponse = ResponseEnvelope[RoleCodeSuggestion]
UserRoleListResponse = ResponseEnvelope[List[RoleItem]]
UserRolesResponse = ResponseEnvelope[UserRolesData]
