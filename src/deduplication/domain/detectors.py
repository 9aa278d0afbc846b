"""重复记录分组。

对同一实体类型的记录两两评分，达到阈值的记录对通过并查集合并成组，
分组具有传递性：A~B 且 B~C 时 A、B、C 在同一组。

时间复杂度: 每种实体类型 O(n²) 次评分
"""

import logging
import math
from collections import defaultdict

from src.deduplication.domain.errors import ValidationError
from src.deduplication.domain.models import (
    MANUAL_MATCH,
    MULTIPLE_MATCH,
    DuplicateGroup,
)
from src.deduplication.domain.scorer import SimilarityScorer
from src.records.domain.models import EntityKind, Record

logger = logging.getLogger(__name__)


def validate_threshold(threshold: float) -> float:
    """校验相似度阈值，要求 0 < threshold <= 100。

    Raises:
        ValidationError: 阈值不是数字或超出范围
    """
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ValidationError(f"阈值必须是数字: {threshold!r}")
    if math.isnan(threshold) or threshold <= 0 or threshold > 100:
        raise ValidationError(f"阈值必须在 (0, 100] 范围内: {threshold}")
    return float(threshold)


class UnionFind:
    """并查集，带路径压缩和按秩合并。"""

    def __init__(self) -> None:
        self.parent: dict[str, str] = {}
        self.rank: dict[str, int] = {}

    def make_set(self, x: str) -> None:
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0

    def find(self, x: str) -> str:
        self.make_set(x)
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        # 路径压缩
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: str, y: str) -> None:
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x == root_y:
            return

        if self.rank[root_x] < self.rank[root_y]:
            self.parent[root_x] = root_y
        elif self.rank[root_x] > self.rank[root_y]:
            self.parent[root_y] = root_x
        else:
            self.parent[root_y] = root_x
            self.rank[root_x] += 1


class DuplicateDetector:
    """重复组检测器。

    阈值提高时分组只会拆分或消失，不会出现新的记录对。
    """

    def __init__(self, scorer: SimilarityScorer | None = None) -> None:
        """初始化检测器。

        Args:
            scorer: 相似度评分器
        """
        self.scorer = scorer or SimilarityScorer()

    def find_duplicate_groups(
        self, records: list[Record], threshold: float
    ) -> list[DuplicateGroup]:
        """查找重复组。

        Args:
            records: 待检测记录，可混合多种实体类型
            threshold: 相似度阈值，0 < threshold <= 100

        Returns:
            重复组列表，按得分降序、首个成员 ID 升序排列

        Raises:
            ValidationError: 阈值非法
        """
        threshold = validate_threshold(threshold)

        # 按实体类型分区，同一 ID 只保留第一次出现
        partitions: dict[EntityKind, list[Record]] = defaultdict(list)
        seen: set[tuple[EntityKind, str]] = set()
        for record in records:
            key = (record.kind, record.id)
            if key in seen:
                continue
            seen.add(key)
            partitions[record.kind].append(record)

        groups: list[DuplicateGroup] = []
        for kind, members in partitions.items():
            groups.extend(self._group_kind(kind, members, threshold))

        groups.sort(key=lambda g: (-g.similarity_score, g.records[0].id))

        counters: dict[EntityKind, int] = defaultdict(int)
        for group in groups:
            counters[group.kind] += 1
            group.id = f"{group.kind.value}-group-{counters[group.kind]}"

        logger.debug(
            f"重复检测完成: {len(seen)} 条记录, 阈值 {threshold}, 发现 {len(groups)} 组"
        )
        return groups

    def _group_kind(
        self, kind: EntityKind, records: list[Record], threshold: float
    ) -> list[DuplicateGroup]:
        if len(records) < 2:
            return []

        uf = UnionFind()
        qualifying: list[tuple[str, float, str | None]] = []

        for i, a in enumerate(records):
            uf.make_set(a.id)
            for b in records[i + 1:]:
                result = self.scorer.score(a, b)
                if result.score >= threshold:
                    uf.union(a.id, b.id)
                    qualifying.append((a.id, result.score, result.match_type))

        if not qualifying:
            return []

        components: dict[str, list[Record]] = defaultdict(list)
        for record in records:
            components[uf.find(record.id)].append(record)

        best_score: dict[str, float] = {}
        match_types: dict[str, set[str]] = defaultdict(set)
        for record_id, score, match_type in qualifying:
            root = uf.find(record_id)
            best_score[root] = max(best_score.get(root, 0.0), score)
            if match_type:
                match_types[root].add(match_type)

        groups = []
        for root, members in components.items():
            if len(members) < 2:
                continue
            types = match_types[root]
            if not types:
                match_type = None
            elif len(types) == 1:
                match_type = next(iter(types))
            else:
                match_type = MULTIPLE_MATCH

            groups.append(
                DuplicateGroup(
                    id=f"{kind.value}-group-pending",
                    kind=kind,
                    records=members,
                    match_type=match_type,
                    similarity_score=best_score[root],
                )
            )
        return groups


def manual_pairing(records: list[Record]) -> list[DuplicateGroup]:
    """按顺序两两配对生成人工审核组。

    用于批量查重未发现重复时，让用户仍可逐对审核。
    奇数个记录时，最后一条并入最后一组。

    Args:
        records: 同一实体类型的记录

    Returns:
        match_type 为 manual、得分为 0 的组

    Raises:
        ValidationError: 记录属于不同实体类型
    """
    unique: list[Record] = []
    seen: set[str] = set()
    for record in records:
        if record.id not in seen:
            seen.add(record.id)
            unique.append(record)

    if len(unique) < 2:
        return []

    kinds = {r.kind for r in unique}
    if len(kinds) > 1:
        raise ValidationError("人工配对的记录必须属于同一实体类型")
    kind = unique[0].kind

    chunks = [unique[i:i + 2] for i in range(0, len(unique) - 1, 2)]
    if len(unique) % 2:
        chunks[-1].append(unique[-1])

    return [
        DuplicateGroup(
            id=f"manual-group-{n}",
            kind=kind,
            records=chunk,
            match_type=MANUAL_MATCH,
            similarity_score=0.0,
        )
        for n, chunk in enumerate(chunks, start=1)
    ]
