"""时区工具：按配置时区格式化审计时间。"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from app.packages.rbac.core.config import get_settings


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """将时间转换到配置时区并格式化为 ``YYYY-MM-DD HH:MM:SS``；无时区对象视为本地时间。"""
    if value is None:
        return None
    tz = get_settings().timezone_info
    localized = value.replace(tzinfo=tz) if value.tzinfo is None else value.astimezone(tz)
    return localized.strftime("%Y-%m-%d %H:%M:%S")
