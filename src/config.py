"""配置管理模块。

使用 Pydantic 加载和验证环境变量。
"""

from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# 加载 .env 文件
load_dotenv()


class Settings(BaseSettings):
    """应用配置。

    从环境变量加载配置，使用 Pydantic 进行验证。
    """

    # 数据库配置
    database_url: str = Field(
        default="sqlite:///./opsdesk.db",
        description="数据库连接地址"
    )

    # 日志配置
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="日志级别",
        validate_default=True,  # 确保默认值也经过验证
    )

    # 监控配置
    prometheus_enabled: bool = Field(
        default=True, description="是否启用 Prometheus 监控"
    )

    # 重复扫描配置
    duplicate_default_threshold: float = Field(
        default=70.0, gt=0.0, le=100.0,
        description="未指定阈值时使用的默认相似度阈值（0-100）"
    )
    duplicate_scan_limit: int = Field(
        default=10000, ge=2, le=100000,
        description="单次重复扫描最多加载的记录数"
    )

    # 相似度评分配置
    field_match_threshold: float = Field(
        default=80.0, ge=0.0, le=100.0,
        description="字段得分达到该值时计入匹配类型"
    )
    identity_match_floor: float = Field(
        default=90.0, ge=0.0, le=100.0,
        description="身份字段（邮箱、SKU）完全一致时总分的下限"
    )
    numeric_closeness_scale: float = Field(
        default=5.0, gt=0.0, le=100.0,
        description="数值字段每 1% 差异扣除的分数"
    )
    date_decay_per_day: float = Field(
        default=10.0, gt=0.0, le=100.0,
        description="日期字段每相差一天扣除的分数"
    )

    # 合并策略配置
    merge_prefer_larger_total: bool = Field(
        default=True,
        description="合并订单时是否保留较大的金额（False 则优先主记录）"
    )
    merge_prefer_recent_date: bool = Field(
        default=True,
        description="合并订单时是否保留较新的订单日期（False 则优先主记录）"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """验证并标准化日志级别。"""
        if isinstance(v, str):
            return v.upper()
        return v


# 全局缓存，用于测试时清除
_settings_cache: Settings | None = None


def get_settings() -> Settings:
    """获取配置单例。

    使用全局缓存确保配置只加载一次。

    Returns:
        Settings: 配置实例
    """
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings()
    return _settings_cache


def clear_settings_cache() -> None:
    """清除配置缓存。

    主要用于测试场景。
    """
    global _settings_cache
    _settings_cache = None
