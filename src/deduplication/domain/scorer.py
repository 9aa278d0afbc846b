"""记录相似度评分。

按实体类型的字段比较规则对两条记录打分，得分范围 0-100。
评分是纯函数，且 score(a, b) == score(b, a)。
"""

import re
from datetime import date, datetime
from typing import Any

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from src.deduplication.domain.comparators import (
    ComparisonMethod,
    FieldComparator,
    comparators_for,
)
from src.deduplication.domain.errors import ValidationError
from src.deduplication.domain.models import ScoringConfig, SimilarityResult
from src.records.domain.models import Record

_NON_DIGITS = re.compile(r"\D")


def _normalize_text(value: Any) -> str | None:
    """小写并压缩空白；空值返回 None。"""
    if value is None or isinstance(value, bool):
        return None
    text = " ".join(str(value).split()).lower()
    return text or None


def parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


class SimilarityScorer:
    """记录相似度评分器。

    任一侧缺失或格式错误的字段不参与加权平均。
    身份字段（邮箱、SKU）完全一致时，总分不低于 identity_match_floor。
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        """初始化评分器。

        Args:
            config: 评分参数，默认使用 ScoringConfig 默认值
        """
        self.config = config or ScoringConfig()

    def score(self, a: Record, b: Record) -> SimilarityResult:
        """计算两条记录的相似度。

        Args:
            a: 记录 A
            b: 记录 B

        Returns:
            SimilarityResult: 总分、各字段得分和命中字段

        Raises:
            ValidationError: 两条记录的实体类型不同
        """
        if a.kind != b.kind:
            raise ValidationError(
                f"不能比较不同类型的记录: {a.kind.value} 与 {b.kind.value}"
            )

        field_scores: dict[str, float] = {}
        matched_fields: list[str] = []
        weighted_sum = 0.0
        total_weight = 0.0
        identity_hit = False

        for comparator in comparators_for(a.kind):
            field_score = self.compare_field(comparator, a, b)
            if field_score is None:
                continue

            field_scores[comparator.name] = round(field_score, 1)
            weighted_sum += field_score * comparator.weight
            total_weight += comparator.weight

            if field_score >= self.config.field_match_threshold:
                matched_fields.append(comparator.name)
            if comparator.identity and field_score >= 100.0:
                identity_hit = True

        score = weighted_sum / total_weight if total_weight else 0.0
        if identity_hit:
            score = max(score, self.config.identity_match_floor)

        return SimilarityResult(
            score=round(min(score, 100.0), 1),
            field_scores=field_scores,
            matched_fields=matched_fields,
        )

    def compare_field(
        self, comparator: FieldComparator, a: Record, b: Record
    ) -> float | None:
        """按比较规则计算单个字段得分。

        Returns:
            0-100 的得分；任一侧缺失时返回 None
        """
        left = self._extract(comparator, a)
        right = self._extract(comparator, b)
        if left is None or right is None:
            return None

        method = comparator.method
        if method == ComparisonMethod.exact:
            return 100.0 if left == right else 0.0
        if method in (ComparisonMethod.fuzzy_text, ComparisonMethod.phone):
            return Levenshtein.normalized_similarity(left, right) * 100.0
        if method == ComparisonMethod.token_text:
            return float(fuzz.token_sort_ratio(left, right))
        if method == ComparisonMethod.numeric:
            return self._numeric_closeness(left, right)
        if method == ComparisonMethod.date:
            days = abs((left - right).days)
            return max(0.0, 100.0 - days * self.config.date_decay_per_day)
        raise ValueError(f"未知的比较方法: {method}")

    def _numeric_closeness(self, left: float, right: float) -> float:
        largest = max(abs(left), abs(right))
        if largest == 0:
            return 100.0
        pct_diff = abs(left - right) / largest * 100.0
        return max(0.0, 100.0 - pct_diff * self.config.numeric_closeness_scale)

    @staticmethod
    def _extract(comparator: FieldComparator, record: Record) -> Any:
        """读取并规范化比较所需的值，缺失或格式错误时返回 None。"""
        method = comparator.method

        if method == ComparisonMethod.numeric:
            return parse_number(record.get(comparator.sources[0]))
        if method == ComparisonMethod.date:
            return parse_date(record.get(comparator.sources[0]))
        if method == ComparisonMethod.phone:
            raw = record.get(comparator.sources[0])
            if raw is None:
                return None
            digits = _NON_DIGITS.sub("", str(raw))
            return digits or None

        parts = [_normalize_text(record.get(name)) for name in comparator.sources]
        parts = [p for p in parts if p]
        return " ".join(parts) if parts else None
