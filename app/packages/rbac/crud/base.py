"""CRUD 基类：为各实体提供通用的数据访问方法。

写操作默认只 ``flush``，由调用方（服务层的事务块）决定何时提交，
保证一个业务操作中的多次写入要么全部生效、要么全部回滚。
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.packages.rbac.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """封装常见的查询、创建、更新与删除逻辑，减少重复代码。"""

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def query(self, db: Session):
        return db.query(self.model)

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        if id is None:
            return None
        return self.query(db).filter(self.model.id == id).first()

    def list_by_ids(self, db: Session, ids) -> List[ModelType]:
        """根据主键集合批量查询，忽略空值。"""
        id_set = {int(item) for item in ids if item is not None}
        if not id_set:
            return []
        return self.query(db).filter(self.model.id.in_(id_set)).all()

    def create(self, db: Session, obj_in: Dict[str, Any]) -> ModelType:
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        db.flush()
        return db_obj

    def update(self, db: Session, db_obj: ModelType, fields: Dict[str, Any]) -> ModelType:
        for key, value in fields.items():
            setattr(db_obj, key, value)
        db.add(db_obj)
        db.flush()
        return db_obj

    def delete(self, db: Session, db_obj: ModelType) -> None:
        db.delete(db_obj)
        db.flush()


def is_code_taken(db: Session, model: Type[Base], code: str, *, exclude_id: Optional[int] = None) -> bool:
    """判断编码是否已被占用（大小写不敏感），`exclude_id` 用于更新场景排除自身。"""
    query = db.query(model.id).filter(func.lower(model.code) == code.strip().lower())
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query.first() is not None
