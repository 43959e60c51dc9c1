"""异常处理模块：定义统一的业务异常分类与响应格式。

- ``NotFoundError``：引用的菜单/角色/组织/用户不存在（管理类操作返回 404）；
- ``InvariantViolationError``：删除受保护或被占用的对象、产生循环的父级调整等，写入前拒绝；
- ``ConflictError``：名称/编码唯一性冲突，编码生成在有限次重试后仍冲突时抛出。

存储层异常（``SQLAlchemyError``）不做包装，回滚后原样向上传递，由兜底处理器转换为 500。
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from .logger import logger


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    default_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, msg: str, code: int | None = None, data=None) -> None:
        super().__init__(status_code=code or self.default_code, detail=msg)
        self.msg = msg
        self.data = data


class NotFoundError(AppException):
    default_code = status.HTTP_404_NOT_FOUND


class InvariantViolationError(AppException):
    default_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppException):
    default_code = status.HTTP_409_CONFLICT


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：记录堆栈并将未捕获异常转换为标准的 500 响应结构。"""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
