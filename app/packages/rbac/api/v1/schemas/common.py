"""通用响应封装模型。"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ResponseEnvelope(BaseModel, Generic[T]):
    """系统统一的响应外层结构。"""

    msg: str
    data: Optional[T] = None
    code: int
    meta: Optional[Dict[str, Any]] = None


class PageData(BaseModel, Generic[T]):
    """分页列表的数据部分。"""

    total: int
    items: List[T]
    page: int
    page_size: int


class DeletionResult(BaseModel):
    id: int


DeletionResponse = ResponseEnvelope[DeletionResult]
