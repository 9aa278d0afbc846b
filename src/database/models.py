"""数据库基础模块。

定义 SQLAlchemy 声明式基类和同步引擎。
业务表模型位于各模块的 infrastructure/models.py。
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy 声明式基类。"""

    pass


# 延迟初始化引擎
_engine = None


def get_engine():
    """获取数据库引擎。

    用于同步数据库操作（建表、脚本）。引擎在首次调用时创建。
    """
    global _engine
    if _engine is None:
        from src.config import get_settings

        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            echo=settings.log_level == "DEBUG",
        )
    return _engine


def reset_engine() -> None:
    """释放并清除引擎缓存。

    主要用于测试场景切换数据库地址。
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None
