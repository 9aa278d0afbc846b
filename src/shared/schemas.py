"""公共 Pydantic 基类。

提供 UTC datetime 序列化和 camelCase 字段别名支持。
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _serialize_utc(v: datetime) -> str:
    """将 naive datetime 视为 UTC 输出 ISO 字符串。"""
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc).isoformat()
    return v.isoformat()


class UTCDatetimeModel(BaseModel):
    """带 UTC datetime 序列化的 Pydantic 基类。

    SQLite 不存储时区信息，ORM 返回 naive datetime（实际为 UTC）。
    本基类确保所有 datetime 字段序列化为 JSON 时带上 UTC 时区标记（+00:00），
    避免前端 JavaScript ``new Date()`` 将其误解析为本地时间。
    """

    model_config = ConfigDict(json_encoders={datetime: _serialize_utc})


class CamelModel(UTCDatetimeModel):
    """API 请求/响应基类。

    JSON 字段使用 camelCase，Python 侧仍可用 snake_case 赋值。
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_encoders={datetime: _serialize_utc},
    )
