"""FastAPI 应用入口。"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import get_settings
from src.database.async_session import PoolMetricsCollector
from src.database.models import Base
from src.database.models import get_engine as engine

# 注册 ORM 模型到 Base.metadata
from src.records.infrastructure import models as records_models  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理。

    启动时创建数据库表并按配置启动连接池监控，关闭时停止监控并等待采集线程退出。
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    # 启动时创建数据库表
    Base.metadata.create_all(engine())
    logger.info("数据库表已就绪")

    collector = PoolMetricsCollector() if settings.prometheus_enabled else None
    if collector is not None:
        collector.start()
    app.state.pool_metrics = collector

    try:
        yield
    finally:
        if collector is not None:
            collector.stop()


# 创建 FastAPI 应用
app = FastAPI(
    title="OpsDesk Records",
    description="小型企业运营后台的记录管理与重复合并服务",
    version="0.1.0",
    lifespan=lifespan,
)

# 配置 CORS 中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 配置 Prometheus 监控中间件（在 CORS 之后）
from src.monitoring.middleware import PrometheusMiddleware

settings = get_settings()
if settings.prometheus_enabled:
    app.add_middleware(PrometheusMiddleware)


@app.get("/health")
async def health_check():
    """健康检查端点。

    检查数据库连接，返回各组件健康信息。
    始终返回 HTTP 200 以兼容 Docker HEALTHCHECK。
    """
    from sqlalchemy import text

    from src.database.async_session import get_async_session_maker

    components = {}

    try:
        session_maker = get_async_session_maker()
        async with session_maker() as session:
            await session.execute(text("SELECT 1"))
        components["database"] = {"status": "healthy"}
    except Exception as e:
        components["database"] = {"status": "unhealthy", "error": str(e)}

    overall = "healthy"
    if any(c["status"] == "unhealthy" for c in components.values()):
        overall = "degraded"

    return {"status": overall, "components": components}


# 导入并注册 API 路由
# 去重路由必须先于记录 CRUD 路由注册，否则 /api/contacts/duplicates 会被 /{contact_id} 匹配
from src.deduplication.api import routes as deduplication_routes
from src.records.api.routes import contacts_router, orders_router, products_router

app.include_router(deduplication_routes.router)
app.include_router(contacts_router)
app.include_router(products_router)
app.include_router(orders_router)

# 注册 Prometheus 监控路由
from src.monitoring import routes as monitoring_routes

app.include_router(monitoring_routes.router)


def main():
    """主函数 - 用于开发服务器启动。"""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
