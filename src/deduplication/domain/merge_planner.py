"""合并规划。

根据主记录和重复记录计算合并后的字段值，生成 MergeDecision。
规划是纯计算，不访问数据库。
"""

import logging
from datetime import date
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from src.deduplication.domain.errors import InvalidMergeError, ValidationError
from src.deduplication.domain.models import (
    MERGE_FIELDS_BY_KIND,
    DuplicateGroup,
    MergeDecision,
    MergePolicy,
)
from src.deduplication.domain.scorer import parse_date, parse_number
from src.records.domain.models import RECORD_FIELDS, EntityKind, Record

logger = logging.getLogger(__name__)

PRIMARY = "primary"
OVERRIDE = "override"


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_merge_data(kind: EntityKind, data: dict[str, Any]) -> dict[str, Any]:
    """按实体类型校验合并字段。

    Args:
        kind: 实体类型
        data: 合并后的字段值

    Returns:
        校验和类型转换后的字段值（只包含传入的字段）

    Raises:
        ValidationError: 存在未知字段或字段值非法
    """
    schema = MERGE_FIELDS_BY_KIND[kind]
    try:
        validated = schema.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"合并字段校验失败: {problems}") from e
    return validated.model_dump(exclude_unset=True)


class MergePlanner:
    """合并规划器。

    字段取值规则：
    - 文本和引用字段：主记录非空值优先，否则取重复记录的值
    - 订单金额：取较大值（prefer_larger_total）
    - 订单日期：取较新的日期（prefer_recent_date）
    - 订单状态、产品分类、上架状态：保留主记录的值
    - 产品价格：主记录非零值优先
    """

    def __init__(self, policy: MergePolicy | None = None) -> None:
        self.policy = policy or MergePolicy()

    def plan_merge(
        self,
        primary: Record,
        duplicate: Record,
        overrides: dict[str, Any] | None = None,
    ) -> MergeDecision:
        """规划一条重复记录并入主记录。

        Raises:
            InvalidMergeError: 主记录与重复记录相同或类型不同
            ValidationError: 覆盖值包含未知字段或非法值
        """
        return self._plan(primary, [duplicate], overrides)

    def plan_group_merge(
        self,
        group: DuplicateGroup,
        primary_id: str,
        overrides: dict[str, Any] | None = None,
    ) -> MergeDecision:
        """规划把整个重复组并入组内指定的主记录。

        Raises:
            ValidationError: 主记录不在组内
        """
        primary = next((r for r in group.records if r.id == primary_id), None)
        if primary is None:
            raise ValidationError(f"主记录 {primary_id} 不在重复组 {group.id} 中")
        duplicates = [r for r in group.records if r.id != primary_id]
        return self._plan(primary, duplicates, overrides)

    def _plan(
        self,
        primary: Record,
        duplicates: list[Record],
        overrides: dict[str, Any] | None,
    ) -> MergeDecision:
        if not duplicates:
            raise InvalidMergeError("至少需要一条重复记录", primary_id=primary.id)
        for duplicate in duplicates:
            if duplicate.id == primary.id:
                raise InvalidMergeError(
                    "不能将记录合并到自身",
                    primary_id=primary.id,
                    duplicate_id=duplicate.id,
                )
            if duplicate.kind != primary.kind:
                raise InvalidMergeError(
                    f"不能合并不同类型的记录: {primary.kind.value} 与 {duplicate.kind.value}",
                    primary_id=primary.id,
                    duplicate_id=duplicate.id,
                )

        kind = primary.kind
        overrides = overrides or {}
        unknown = sorted(set(overrides) - set(RECORD_FIELDS[kind]))
        if unknown:
            raise ValidationError(f"{kind.value} 没有这些字段: {', '.join(unknown)}")

        merged: dict[str, Any] = {}
        sources: dict[str, str] = {}
        for name in RECORD_FIELDS[kind]:
            value, source = self._resolve(kind, name, primary, duplicates)
            merged[name] = value
            sources[name] = source

        for name, value in overrides.items():
            merged[name] = value
            sources[name] = OVERRIDE

        merged = {**merged, **validate_merge_data(kind, merged)}
        logger.debug(
            f"合并规划: {kind.value} {primary.id} <- {[d.id for d in duplicates]}"
        )
        return MergeDecision(
            kind=kind,
            primary=primary,
            duplicates=duplicates,
            merged_data=merged,
            field_sources=sources,
        )

    def _resolve(
        self, kind: EntityKind, name: str, primary: Record, duplicates: list[Record]
    ) -> tuple[Any, str]:
        """计算单个字段的合并值及来源。"""
        if kind == EntityKind.order and name == "total" and self.policy.prefer_larger_total:
            return self._pick(primary, duplicates, name, parse_number, max)
        if kind == EntityKind.order and name == "order_date" and self.policy.prefer_recent_date:
            return self._pick(primary, duplicates, name, parse_date, max)
        if (kind, name) in _PRIMARY_ONLY:
            return primary.get(name), PRIMARY
        if kind == EntityKind.product and name == "price":
            return self._first(primary, duplicates, name, lambda v: not parse_number(v))
        return self._first(primary, duplicates, name, _is_empty)

    @staticmethod
    def _first(
        primary: Record,
        duplicates: list[Record],
        name: str,
        is_empty: Callable[[Any], bool],
    ) -> tuple[Any, str]:
        """主记录优先，依次取第一个非空值。"""
        value = primary.get(name)
        if not is_empty(value):
            return value, PRIMARY
        for duplicate in duplicates:
            candidate = duplicate.get(name)
            if not is_empty(candidate):
                return candidate, f"duplicate:{duplicate.id}"
        return value, PRIMARY

    @staticmethod
    def _pick(
        primary: Record,
        duplicates: list[Record],
        name: str,
        convert: Callable[[Any], float | date | None],
        choose: Callable,
    ) -> tuple[Any, str]:
        """在所有可解析的值中按 choose 选择，相同时主记录优先。"""
        candidates = [(primary.get(name), PRIMARY)] + [
            (d.get(name), f"duplicate:{d.id}") for d in duplicates
        ]
        parsed = [(convert(v), v, s) for v, s in candidates]
        parsed = [item for item in parsed if item[0] is not None]
        if not parsed:
            return primary.get(name), PRIMARY

        best = choose(item[0] for item in parsed)
        for converted, raw, source in parsed:
            if converted == best:
                return raw, source
        return primary.get(name), PRIMARY


_PRIMARY_ONLY = {
    (EntityKind.order, "status"),
    (EntityKind.product, "category_id"),
    (EntityKind.product, "is_active"),
}
