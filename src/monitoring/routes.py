"""Prometheus 监控路由。

暴露 /metrics 端点，包含 HTTP 请求、连接池以及重复扫描和合并的指标。
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.config import get_settings

router = APIRouter(tags=["monitoring"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """返回 Prometheus 文本格式的监控指标。

    监控关闭时返回一行注释，便于抓取端区分“关闭”和“无数据”。
    """
    if not get_settings().prometheus_enabled:
        return Response(
            content=b"# Monitoring is disabled\n",
            media_type=CONTENT_TYPE_LATEST,
        )

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
