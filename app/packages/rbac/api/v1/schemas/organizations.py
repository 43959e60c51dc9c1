"""组织相关的请求与响应模型定义。"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.packages.rbac.api.v1.schemas.common import PageData, ResponseEnvelope


class OrganizationCreateRequest(BaseModel):
    """新建组织；``code`` 缺省时由名称派生。"""

    name: str = Field(..., min_length=1, max_length=100, description="组织名称")
    code: Optional[str] = Field(default=None, max_length=100, description="组织编码")
    parent_id: Optional[int] = Field(default=None, description="父级组织 ID")
    sort_order: int = Field(default=0, ge=0, description="同级排序")
    is_active: bool = Field(default=True, description="是否启用")

    @model_validator(mode="after")
    def _trim_fields(self) -> "OrganizationCreateRequest":
        self.name = self.name.strip()
        if not self.name:
            raise ValueError("组织名称不能为空")
        if self.code is not None:
            self.code = self.code.strip() or None
        return self


class OrganizationUpdateRequest(BaseModel):
    """部分更新组织，只有显式传入的字段会被修改。"""

    name: Optional[str] = Field(default=None, max_length=100)
    code: Optional[str] = Field(default=None, max_length=100)
    parent_id: Optional[int] = None
    sort_order: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class OrganizationMoveRequest(BaseModel):
    parent_id: Optional[int] = Field(default=None, description="新的父级组织 ID，为空表示移动到根级")


class OrganizationBatchItem(BaseModel):
    id: int
    parent_id: Optional[int] = None
    sort_order: Optional[int] = Field(default=None, ge=0)


class OrganizationBatchRequest(BaseModel):
    """批量调整父级；``parent_id`` 缺省表示不调整。"""

    updates: List[OrganizationBatchItem] = Field(..., min_length=1)


class OrganizationItem(BaseModel):
    id: int
    name: str
    code: str
    parent_id: Optional[int] = None
    sort_order: int
    is_active: bool
    create_time: Optional[str] = None
    update_time: Optional[str] = None


class OrganizationTreeNode(OrganizationItem):
    """组织树节点。"""

    children: List["OrganizationTreeNode"] = Field(default_factory=list)


class OrganizationBatchResult(BaseModel):
    updated: int


class OrganizationMembersRequest(BaseModel):
    """批量加入组织的用户。"""

    user_ids: List[int] = Field(..., min_length=1)


class OrganizationMemberItem(BaseModel):
    id: int
    username: str
    nickname: Optional[str] = None
    is_active: bool
    is_primary: bool
    role_codes: List[str] = Field(default_factory=list, description="该组织内的角色编码")


class OrganizationMembersAdded(BaseModel):
    org_id: int
    added: List[int]


class OrganizationMembership(BaseModel):
    user_id: int
    org_id: int


class OrganizationMemberMoved(BaseModel):
    user_id: int
    from_org_id: int
    to_org_id: int


class UserOrganizationItem(BaseModel):
    org_id: int
    org_name: Optional[str] = None
    org_code: Optional[str] = None
    is_primary: bool


OrganizationListResponse = ResponseEnvelope[PageData[OrganizationItem]]
OrganizationDetailResponse = ResponseEnvelope[OrganizationItem]
OrganizationTreeResponse = ResponseEnvelope[List[OrganizationTreeNode]]
OrganizationBatchResponse = ResponseEnvelope[OrganizationBatchResult]
OrganizationMemberListResponse = ResponseEnvelope[PageData[OrganizationMemberItem]]
OrganizationMembersAddResponse = ResponseEnvelope[OrganizationMembersAdded]
OrganizationMembershipResponse = ResponseEnvelope[OrganizationMembership]
OrganizationMemberMoveResponse = ResponseEnvelope[OrganizationMemberMoved]
UserOrganizationListResponse = ResponseEnvelope[List[UserOrganizationItem]]
