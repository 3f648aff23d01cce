import os
import sys
import tempfile
from pathlib import Path

AUTH_DIR = Path(__file__).resolve().parents[1]
BACKEND_DIR = AUTH_DIR.parent
for path in (AUTH_DIR, BACKEND_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

# 必须在导入 app 之前设置
_TMP_DIR = tempfile.mkdtemp(prefix="auth-tests-")
os.environ.setdefault("AUTH_DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/default.db")
os.environ.setdefault("AUTH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_JWT_SECRET", "test_secret_key_for_unit_tests_only")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from common.roles import UserRole
from common.session_cache import session_cache
from app.database import create_engine, init_db, get_db
from app.main import app
from app.services.user_service import user_service


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/auth.db")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def clear_cache():
    session_cache.clear()
    yield
    session_cache.clear()


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(session_factory):
    """创建并提交一个用户"""
    async def _make(phone: str, role: UserRole = UserRole.AGENT, password: str = "abc12345", **kwargs):
        async with session_factory() as session:
            user = await user_service.insert(session, phone, password, role=role, **kwargs)
            await session.commit()
            return user

    return _make
