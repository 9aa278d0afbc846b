"""异步数据库会话管理。

引擎和会话工厂在首次使用时按配置创建；连接池指标由 PoolMetricsCollector
在后台线程中采集，由应用生命周期显式启动和停止。
"""

import logging
from collections.abc import AsyncIterator, Callable
from threading import Event, Thread

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.monitoring import metrics

logger = logging.getLogger(__name__)

_ASYNC_DRIVERS = {
    "sqlite:///": "sqlite+aiosqlite:///",
    "postgresql://": "postgresql+asyncpg://",
}

_async_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None


def to_async_url(database_url: str) -> str:
    """把同步驱动的数据库 URL 换成对应的异步驱动。

    Args:
        database_url: 配置中的数据库 URL，如 sqlite:///./opsdesk.db

    Returns:
        异步驱动 URL，如 sqlite+aiosqlite:///./opsdesk.db；已是异步驱动时原样返回
    """
    for sync_prefix, async_prefix in _ASYNC_DRIVERS.items():
        if database_url.startswith(sync_prefix):
            return async_prefix + database_url[len(sync_prefix):]
    return database_url


def get_async_engine() -> AsyncEngine:
    """获取异步数据库引擎，首次调用时创建。"""
    global _async_engine
    if _async_engine is None:
        from src.config import get_settings

        settings = get_settings()
        _async_engine = create_async_engine(
            to_async_url(settings.database_url),
            echo=settings.log_level == "DEBUG",
            pool_pre_ping=True,
        )
    return _async_engine


def get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_maker


def reset_async_engine() -> None:
    """清除引擎和会话工厂缓存，下次使用时按当前配置重建。

    主要用于测试场景切换数据库地址。
    """
    global _async_engine, _async_session_maker
    _async_engine = None
    _async_session_maker = None


async def get_async_session() -> AsyncIterator[AsyncSession]:
    """FastAPI 依赖：每个请求一个异步会话。

    Yields:
        AsyncSession: 异步数据库会话
    """
    async with get_async_session_maker() as session:
        yield session


class PoolMetricsCollector:
    """连接池指标采集器。

    后台线程每隔 interval 秒把连接池大小和空闲连接数写入 Prometheus 指标。
    stop() 会唤醒并等待线程退出。
    """

    def __init__(
        self,
        engine_getter: Callable[[], AsyncEngine] = get_async_engine,
        interval: float = 5.0,
    ) -> None:
        """初始化采集器。

        Args:
            engine_getter: 返回待采集引擎的函数
            interval: 采集间隔（秒）
        """
        self._engine_getter = engine_getter
        self._interval = interval
        self._stopped = Event()
        self._thread: Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def collect_once(self) -> None:
        """采集一次连接池指标。

        不支持计数的连接池（如内存 SQLite 使用的 StaticPool）直接跳过。
        """
        pool = self._engine_getter().pool
        if not hasattr(pool, "size") or not hasattr(pool, "checkedin"):
            return
        metrics.db_pool_size.set(pool.size())
        metrics.db_pool_available.set(pool.checkedin())

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._thread = Thread(target=self._run, daemon=True, name="db_pool_metrics")
        self._thread.start()
        logger.info("数据库连接池监控已启动")

    def stop(self, timeout: float | None = None) -> None:
        """停止采集并等待后台线程退出。

        Args:
            timeout: 等待线程退出的最长时间（秒），None 表示一直等待
        """
        if self._thread is None:
            return
        self._stopped.set()
        self._thread.join(timeout)
        self._thread = None
        logger.info("数据库连接池监控已停止")

    def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                self.collect_once()
            except Exception as e:
                logger.warning(f"更新数据库连接池指标失败: {e}")
            self._stopped.wait(self._interval)
