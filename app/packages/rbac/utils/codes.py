"""编码生成：由名称派生机器编码，并在唯一约束冲突时以数字后缀消歧。

数据库唯一约束才是最终依据：预检查只用于挑选候选值，插入时若仍撞上
``IntegrityError``（并发写入），回滚后改用下一个后缀重试，超过次数上限抛出 409。
"""

from __future__ import annotations

import logging
import random
import re
import string
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.packages.rbac.core.config import get_settings
from app.packages.rbac.core.exceptions import ConflictError
from app.packages.rbac.crud.base import is_code_taken
from app.packages.rbac.models.base import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits
_BASE36_DIGITS = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def fallback_code(prefix: str) -> str:
    """名称中没有可用字符时的兜底编码：``<prefix>_<时间戳36进制>_<随机4位>``。"""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_RANDOM_ALPHABET, k=4))
    return f"{prefix}_{stamp}_{suffix}"


def slugify_code(name: Optional[str], *, separator: str = "-", prefix: str = "org") -> str:
    """小写化，非字母数字的连续片段折叠为分隔符并去掉首尾分隔符。"""
    lowered = (name or "").strip().lower()
    slug = re.sub(r"[^a-z0-9]+", separator, lowered).strip(separator)
    return slug or fallback_code(prefix)


def next_free_code(
    db: Session,
    model: Type[Base],
    base: str,
    *,
    separator: str = "-",
    start: int = 0,
) -> Tuple[str, int]:
    """从 ``start`` 开始依次尝试 ``base``、``base-1``、``base-2``…，返回首个未占用的编码及其序号。"""
    index = max(start, 0)
    while True:
        candidate = base if index == 0 else f"{base}{separator}{index}"
        if not is_code_taken(db, model, candidate):
            return candidate, index
        index += 1


def insert_with_unique_code(
    db: Session,
    model: Type[ModelType],
    base: str,
    build: Callable[[str], ModelType],
    *,
    separator: str = "-",
    on_created: Optional[Callable[[ModelType], None]] = None,
    max_attempts: Optional[int] = None,
) -> ModelType:
    """以乐观方式插入带唯一编码的记录并提交。

    ``build`` 根据候选编码构造实体；``on_created`` 在实体落库（flush）之后、提交之前执行，
    用于在同一事务中写入关联数据。
    """

    attempts = max_attempts or get_settings().code_max_attempts
    index = 0
    for attempt in range(1, attempts + 1):
        code, index = next_free_code(db, model, base, separator=separator, start=index)
        obj = build(code)
        db.add(obj)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Code %s for %s collided on insert (attempt %s/%s), retrying with next suffix",
                code,
                model.__tablename__,
                attempt,
                attempts,
            )
            index += 1
            continue

        try:
            if on_created is not None:
                on_created(obj)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(obj)
        return obj

    raise ConflictError("编码已存在，请更换名称或编码后重试")
