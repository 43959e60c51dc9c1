"""测试夹具：为 pytest 提供数据库、客户端与认证头的共享配置。"""

import os
from typing import Callable, Dict, Generator

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

# 必须在导入应用模块之前设置，避免默认的 PostgreSQL 引擎被创建
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("LOG_DIR", os.path.join(os.path.dirname(__file__), "log"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.packages.rbac.core.dependencies import get_db
from app.packages.rbac.core.security import create_access_token
from app.packages.rbac.db import session as db_session
from app.packages.rbac.db.init_db import init_db
from app.packages.rbac.models.base import Base
from app.packages.rbac.models.user import User
from app.main import app


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal
    yield

    engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture(autouse=True)
def reset_database(setup_test_database) -> Generator[None, None, None]:
    """每个用例前重建表结构并写入内置角色、管理员与菜单种子。"""
    Base.metadata.drop_all(bind=db_session.engine)
    init_db()
    yield


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session_fixture):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session_fixture: Session) -> Callable[..., User]:
    """创建测试用户的工厂；``role`` 对应用户表上的全局角色字段。"""

    def factory(username: str, *, role: str = "user", is_active: bool = True) -> User:
        user = User(username=username, nickname=username, role=role, is_active=is_active)
        db_session_fixture.add(user)
        db_session_fixture.commit()
        db_session_fixture.refresh(user)
        return user

    return factory


@pytest.fixture()
def auth_headers() -> Callable[[int], Dict[str, str]]:
    """根据用户 ID 签发访问令牌并组装 Authorization 头。"""

    def build(user_id: int) -> Dict[str, str]:
        token = create_access_token({"user_id": user_id})
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture()
def admin_headers(db_session_fixture: Session, auth_headers) -> Dict[str, str]:
    """内置管理员账号的认证头。"""
    admin = db_session_fixture.query(User).filter(User.username == "admin").one()
    return auth_headers(admin.id)
