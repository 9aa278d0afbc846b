"""Prometheus 监控模块。

提供 HTTP 请求、重复扫描、记录合并和数据库连接池的监控指标。
"""

from src.monitoring.metrics import (
    db_pool_available,
    db_pool_size,
    duplicate_groups_found_total,
    duplicate_scan_duration_seconds,
    duplicate_scans_total,
    http_request_duration_seconds,
    http_requests_total,
    merge_duration_seconds,
    merges_total,
)

__all__ = [
    "http_requests_total",
    "http_request_duration_seconds",
    "duplicate_scans_total",
    "duplicate_groups_found_total",
    "duplicate_scan_duration_seconds",
    "merges_total",
    "merge_duration_seconds",
    "db_pool_size",
    "db_pool_available",
]
