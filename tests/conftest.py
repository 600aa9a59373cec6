"""测试夹具：为 pytest 提供数据库、临时目录与客户端的共享配置。"""

import os
import shutil
import tempfile
import uuid
from typing import Callable, Generator

import pytest

# 必须在导入应用之前写入环境变量：配置对象与数据库引擎都在导入时创建
TEST_ROOT = tempfile.mkdtemp(prefix="filebrowser_tests_")
TEST_DB_PATH = os.path.join(TEST_ROOT, "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["LOG_DIR"] = os.path.join(TEST_ROOT, "log")
os.environ["ADMIN_HOME_DIR"] = os.path.join(TEST_ROOT, "admin_home")
os.environ["INDEXER_ENABLED"] = "false"
# 指向不可达的 Redis，会话存储回退到内存实现
os.environ["REDIS_HOST"] = "127.0.0.1"
os.environ["REDIS_PORT"] = "1"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.filebrowser.core.dependencies import get_db  # noqa: E402
from app.packages.filebrowser.core.security import get_password_hash  # noqa: E402
from app.packages.filebrowser.crud.users import user_crud  # noqa: E402
from app.packages.filebrowser.db import session as db_session  # noqa: E402
from app.packages.filebrowser.db.init_db import init_db  # noqa: E402
from app.packages.filebrowser.models.base import Base  # noqa: E402
from app.packages.filebrowser.models.user import User  # noqa: E402

ADMIN_CREDENTIALS = {"username": "admin", "password": "admin123"}


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理临时目录。"""
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    init_db()
    yield

    engine.dispose()
    shutil.rmtree(TEST_ROOT, ignore_errors=True)


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
def unique_name() -> Callable[[str], str]:
    """生成互不冲突的用户名/文件名，测试数据库在整个会话内共享。"""
    def _make(prefix: str) -> str:
        return f"{prefix}{uuid.uuid4().hex[:8]}"

    return _make


@pytest.fixture()
def make_user(db_session_fixture: Session, unique_name) -> Callable[..., User]:
    """直接写库创建用户，供服务层单元测试使用。"""
    def _make(prefix: str = "user", *, role: str = "user", permissions=()) -> User:
        return user_crud.create_user(
            db_session_fixture,
            username=unique_name(prefix),
            hashed_password=get_password_hash("secret123"),
            role=role,
            permissions=permissions,
        )

    return _make


@pytest.fixture()
def admin_headers(client: TestClient) -> dict[str, str]:
    resp = client.post("/api/v1/auth/login", json=ADMIN_CREDENTIALS)
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}
