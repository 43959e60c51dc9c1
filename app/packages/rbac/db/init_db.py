"""Database bootstrapping utilities."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.packages.rbac.core.config import get_settings
from app.packages.rbac.core.constants import (
    ADMIN_ROLE_CODE,
    DEFAULT_ADMIN_NICKNAME,
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_USER_ROLE_CODE,
)
from app.packages.rbac.crud.menus import menu_crud
from app.packages.rbac.crud.roles import role_crud
from app.packages.rbac.db import session as db_session
from app.packages.rbac.models.base import Base
from app.packages.rbac.models.role import Role
from app.packages.rbac.models.user import User
from app.packages.rbac.models.user_menu_override import UserMenuOverride  # noqa: F401 - ensure table creation
from app.packages.rbac.models.user_organization import UserOrganization  # noqa: F401 - ensure table creation
from app.packages.rbac.services.menu_sync_service import sync_menus

logger = logging.getLogger(__name__)

# 普通用户角色默认可见的菜单（按菜单标识）
DEFAULT_USER_MENU_NAMES = ("dashboard", "profile")


def init_db(*, sync: Optional[bool] = None) -> None:
    """Create all database tables if they do not exist, seed baseline data and sync the menu seed."""
    settings = get_settings()
    Base.metadata.create_all(bind=db_session.engine)

    session = db_session.SessionLocal()
    try:
        _seed_core_entities(session)
        session.commit()

        should_sync = settings.menu_sync_on_startup if sync is None else sync
        if should_sync:
            sync_menus(
                session,
                mode=settings.menu_sync_mode,
                remove_orphans=settings.menu_sync_remove_orphans,
            )
            _seed_default_role_menus(session)
            session.commit()
    except Exception:
        session.rollback()
        logger.exception("Failed to seed default data during database initialization")
        raise
    finally:
        session.close()


def _seed_core_entities(db: Session) -> None:
    """Ensure the built-in admin/user roles and the administrator account exist."""
    admin_role = _ensure_role(db, code=ADMIN_ROLE_CODE, name="管理员", sort_order=1)
    _ensure_role(db, code=DEFAULT_USER_ROLE_CODE, name="普通用户", sort_order=2)

    admin_user = db.query(User).filter(User.username == DEFAULT_ADMIN_USERNAME).first()
    if admin_user is None:
        admin_user = User(
            username=DEFAULT_ADMIN_USERNAME,
            nickname=DEFAULT_ADMIN_NICKNAME,
            role=ADMIN_ROLE_CODE,
            is_active=True,
        )
        db.add(admin_user)
        db.flush()

    current = {role.id for role in role_crud.list_user_roles(db, admin_user.id)}
    if admin_role.id not in current:
        role_crud.replace_user_roles(db, admin_user.id, current | {admin_role.id})


def _ensure_role(db: Session, *, code: str, name: str, sort_order: int) -> Role:
    role = role_crud.get_by_code(db, code)
    if role is None:
        role = Role(name=name, code=code, sort_order=sort_order, is_system=True, is_disabled=False)
        db.add(role)
        db.flush()
    elif not role.is_system:
        role.is_system = True
        db.add(role)
    return role


def _seed_default_role_menus(db: Session) -> None:
    """Grant the default menus to the built-in user role when it has none yet."""
    user_role = role_crud.get_by_code(db, DEFAULT_USER_ROLE_CODE)
    if user_role is None or role_crud.list_menu_ids(db, user_role.id):
        return
    menu_ids = []
    for name in DEFAULT_USER_MENU_NAMES:
        menu = menu_crud.get_by_name(db, name)
        if menu is not None:
            menu_ids.append(menu.id)
    if menu_ids:
        role_crud.replace_menus(db, user_role.id, menu_ids)
