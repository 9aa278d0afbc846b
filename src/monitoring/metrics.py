"""Prometheus 指标定义。

定义所有应用级别的 Prometheus 监控指标。
"""

from prometheus_client import Counter, Gauge, Histogram

# HTTP 请求计数器
# 标签: method (HTTP 方法), path (请求路径), status (HTTP 状态码)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

# HTTP 请求延迟直方图
# 标签: method (HTTP 方法), path (请求路径)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

# 重复扫描次数
# 标签: kind (实体类型), mode (scan: 全量扫描, bulk: 指定记录)
duplicate_scans_total = Counter(
    "duplicate_scans_total",
    "Total duplicate scans",
    ["kind", "mode"],
)

# 扫描发现的重复组数
duplicate_groups_found_total = Counter(
    "duplicate_groups_found_total",
    "Total duplicate groups found by scans",
    ["kind"],
)

# 重复扫描耗时
duplicate_scan_duration_seconds = Histogram(
    "duplicate_scan_duration_seconds",
    "Duplicate scan duration in seconds",
    ["kind"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# 合并结果计数器
# 标签: kind (实体类型), result (merged 或错误码)
merges_total = Counter(
    "merges_total",
    "Total merge attempts by result",
    ["kind", "result"],
)

# 合并事务耗时
merge_duration_seconds = Histogram(
    "merge_duration_seconds",
    "Merge transaction duration in seconds",
    ["kind"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# 数据库连接池大小
db_pool_size = Gauge(
    "db_pool_size",
    "Database connection pool size",
)

# 数据库可用连接数
db_pool_available = Gauge(
    "db_pool_available",
    "Available database connections",
)
