"""重复记录检测与合并模块。

提供联系人、订单、产品的相似度评分、重复分组和事务性合并功能。
"""

from src.deduplication.domain.models import (
    DuplicateGroup,
    MergeDecision,
    ScanResult,
    SimilarityResult,
)

__all__ = [
    "DuplicateGroup",
    "MergeDecision",
    "ScanResult",
    "SimilarityResult",
]
