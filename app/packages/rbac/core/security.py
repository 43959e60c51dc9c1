"""安全模块：JWT 令牌的签发与解析。

令牌由外部登录服务签发，这里只负责校验签名并取出 ``user_id``；
``create_access_token`` 供联调脚本与测试生成合法令牌。
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .config import get_settings
from .logger import logger


def create_access_token(subject: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """根据传入载荷生成带有过期时间的签名 JWT。"""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = subject.copy()
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """解析并校验 JWT（含过期时间），合法时返回载荷，否则返回 ``None``。"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.warning("Failed to decode JWT: %s", exc)
        return None


def extract_user_id(token: str) -> Optional[int]:
    """从令牌中取出经过校验的用户 ID。"""
    payload = decode_token(token)
    if payload is None:
        return None
    raw = payload.get("user_id", payload.get("sub"))
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
