"""去重领域模型。"""

from src.deduplication.domain.errors import (
    DeduplicationError,
    InvalidMergeError,
    InvalidTransitionError,
    MergeError,
    MergeExecutionError,
    NotFoundError,
    StaleRecordError,
    ValidationError,
)
from src.deduplication.domain.models import (
    BulkMergeOutcome,
    DuplicateGroup,
    MergeDecision,
    MergePolicy,
    ScoringConfig,
    SimilarityResult,
)

__all__ = [
    "BulkMergeOutcome",
    "DeduplicationError",
    "DuplicateGroup",
    "InvalidMergeError",
    "InvalidTransitionError",
    "MergeDecision",
    "MergeError",
    "MergeExecutionError",
    "MergePolicy",
    "NotFoundError",
    "ScoringConfig",
    "SimilarityResult",
    "StaleRecordError",
    "ValidationError",
]
