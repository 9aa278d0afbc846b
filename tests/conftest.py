"""Pytest 配置文件。

提供测试 Fixtures 和配置。
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

from src.config import clear_settings_cache
from src.database.models import Base
from src.main import app

# 导入所有 ORM 模型以确保它们被注册到 Base.metadata
from src.records.infrastructure.models import ContactOrm  # noqa: F401

from src.records.domain.models import EntityKind, Record


@pytest.fixture(autouse=True)
def reset_env_before_each_test():
    """在每个测试前重置环境变量。

    这确保测试不依赖本地 .env 文件中的值。
    """
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)
    clear_settings_cache()


@pytest.fixture(scope="function")
async def async_session():
    """异步数据库会话 Fixture。

    每个测试函数使用独立的内存数据库。
    """
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    test_session_maker = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with test_session_maker() as session:
        yield session

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def async_client(async_session):
    """异步 HTTP 客户端 Fixture。

    使用 httpx.AsyncClient 测试 FastAPI 应用，数据库会话替换为测试会话。
    """
    from httpx import ASGITransport, AsyncClient

    from src.database.async_session import get_async_session

    transport = ASGITransport(app=app)

    async def override_get_async_session():
        yield async_session

    app.dependency_overrides[get_async_session] = override_get_async_session

    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_async_session, None)


@pytest.fixture
def make_record():
    """构造通用 Record 的工厂。

    创建时间按调用顺序递增，便于断言顺序。
    """
    base_time = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(record_id: str, kind: EntityKind = EntityKind.contact, version: int = 1, **data):
        counter["n"] += 1
        created_at = base_time + timedelta(minutes=counter["n"])
        return Record(
            id=record_id,
            kind=kind,
            data=data,
            created_at=created_at,
            updated_at=created_at,
            version=version,
        )

    return _make
