"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Callable, Generator
from typing import Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.packages.rbac.core.constants import ACCESS_TOKEN_TYPE
from app.packages.rbac.core.logger import logger
from app.packages.rbac.core.security import extract_user_id
from app.packages.rbac.crud.users import user_crud
from app.packages.rbac.db.session import SessionLocal
from app.packages.rbac.models.user import User
from app.packages.rbac.services.permission_service import permission_service

security_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> int:
    """校验 ``Authorization`` 头部中的 Bearer 令牌并返回用户 ID，非法时抛出 401。"""
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="缺少认证信息")
    if credentials.scheme.lower() != ACCESS_TOKEN_TYPE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="认证类型无效")

    user_id = extract_user_id(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token 无效或已过期")
    return user_id


def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """返回当前认证用户，用户不存在或已停用时抛出 401。"""
    user = user_crud.get(db, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="用户不存在或已停用")
    return user


def require_permission(code: str) -> Callable[..., User]:
    """生成一个依赖：当前用户（可通过 ``scope_org_id`` 查询参数指定组织）需拥有权限字符 ``code``。"""

    def dependency(
        scope_org_id: Optional[int] = Query(None, description="按组织作用域鉴权"),
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> User:
        if not permission_service.check_permission_code(db, current_user.id, scope_org_id, code):
            logger.warning("User %s denied permission %s (org=%s)", current_user.id, code, scope_org_id)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="没有访问该资源的权限")
        return current_user

    return dependency
