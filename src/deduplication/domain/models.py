"""去重领域模型。

定义相似度结果、重复组、合并决策等 Pydantic 数据模型，
以及合并字段的按类型校验模型。
"""

from datetime import date
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.records.domain.models import EntityKind, Record

# 多个字段同时命中时的匹配类型
MULTIPLE_MATCH = "multiple"
# 批量查重未发现重复时按顺序配对生成的组
MANUAL_MATCH = "manual"


class SimilarityResult(BaseModel):
    """两条记录的相似度评分结果。"""

    score: float = Field(..., ge=0.0, le=100.0, description="总分（0-100）")
    field_scores: dict[str, float] = Field(
        default_factory=dict, description="各可比较字段的得分"
    )
    matched_fields: list[str] = Field(
        default_factory=list, description="得分达到匹配阈值的字段，按比较表顺序"
    )

    @property
    def match_type(self) -> str | None:
        """匹配类型：单个字段名、multiple 或 None。"""
        if not self.matched_fields:
            return None
        if len(self.matched_fields) == 1:
            return self.matched_fields[0]
        return MULTIPLE_MATCH


class DuplicateGroup(BaseModel):
    """重复组。

    组内记录属于同一实体类型，按输入顺序排列。
    """

    id: str = Field(..., description="组 ID，如 contact-group-1")
    kind: EntityKind = Field(..., description="实体类型")
    records: list[Record] = Field(..., min_length=2, description="组内记录")
    match_type: str | None = Field(None, description="匹配类型")
    similarity_score: float = Field(
        ..., ge=0.0, le=100.0, description="组内达到阈值的记录对的最高分"
    )

    @property
    def record_ids(self) -> list[str]:
        return [r.id for r in self.records]


class MergeDecision(BaseModel):
    """合并决策：保留哪条主记录、删除哪些重复记录、最终写入的字段值。"""

    kind: EntityKind
    primary: Record
    duplicates: list[Record] = Field(..., min_length=1)
    merged_data: dict[str, Any] = Field(default_factory=dict)
    field_sources: dict[str, str] = Field(
        default_factory=dict,
        description="每个字段的来源：primary、duplicate:<id> 或 override",
    )

    @property
    def duplicate_ids(self) -> list[str]:
        return [d.id for d in self.duplicates]


class BulkMergeOutcome(BaseModel):
    """批量合并中单个记录对的结果。"""

    primary_id: str
    duplicate_id: str
    status: Literal["merged", "failed"]
    error_code: str | None = None
    message: str | None = None


class ScoringConfig(BaseModel):
    """相似度评分参数。"""

    field_match_threshold: float = Field(80.0, ge=0.0, le=100.0)
    identity_match_floor: float = Field(90.0, ge=0.0, le=100.0)
    numeric_closeness_scale: float = Field(5.0, gt=0.0)
    date_decay_per_day: float = Field(10.0, gt=0.0)

    @classmethod
    def from_settings(cls, settings) -> "ScoringConfig":
        return cls(
            field_match_threshold=settings.field_match_threshold,
            identity_match_floor=settings.identity_match_floor,
            numeric_closeness_scale=settings.numeric_closeness_scale,
            date_decay_per_day=settings.date_decay_per_day,
        )


class MergePolicy(BaseModel):
    """合并字段取值策略。"""

    prefer_larger_total: bool = True
    prefer_recent_date: bool = True

    @classmethod
    def from_settings(cls, settings) -> "MergePolicy":
        return cls(
            prefer_larger_total=settings.merge_prefer_larger_total,
            prefer_recent_date=settings.merge_prefer_recent_date,
        )


class _MergeFields(BaseModel):
    """合并字段校验基类。

    未知字段直接拒绝；不可为空的列不接受显式的 null。
    """

    model_config = ConfigDict(extra="forbid")

    required_fields: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def check_required_not_null(self):
        for name in self.required_fields:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"字段 {name} 不能为空")
        return self


class ContactMergeFields(_MergeFields):
    required_fields: ClassVar[tuple[str, ...]] = ("name",)

    name: str | None = Field(None, max_length=200)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    zip: str | None = Field(None, max_length=20)
    notes: str | None = None


class OrderMergeFields(_MergeFields):
    required_fields: ClassVar[tuple[str, ...]] = ("status", "total")

    contact_id: str | None = None
    status: str | None = Field(None, min_length=1, max_length=30)
    total: float | None = Field(None, ge=0.0)
    order_date: date | None = None
    notes: str | None = None


class ProductMergeFields(_MergeFields):
    required_fields: ClassVar[tuple[str, ...]] = ("name", "price", "is_active")

    name: str | None = Field(None, min_length=1, max_length=255)
    sku: str | None = Field(None, max_length=100)
    description: str | None = None
    price: float | None = Field(None, ge=0.0)
    category_id: str | None = None
    image_url: str | None = Field(None, max_length=500)
    data_sheet_url: str | None = Field(None, max_length=500)
    is_active: bool | None = None


MERGE_FIELDS_BY_KIND: dict[EntityKind, type[_MergeFields]] = {
    EntityKind.contact: ContactMergeFields,
    EntityKind.order: OrderMergeFields,
    EntityKind.product: ProductMergeFields,
}


class ScanResult(BaseModel):
    """重复扫描结果。"""

    kind: EntityKind
    threshold: float
    groups: list[DuplicateGroup] = Field(default_factory=list)
    total_records_checked: int = 0
    not_found_ids: list[str] = Field(default_factory=list)
    warning: str | None = None
    message: str | None = None

    @property
    def total_groups(self) -> int:
        return len(self.groups)

    @property
    def total_duplicate_records(self) -> int:
        return sum(len(g.records) for g in self.groups)


class MergePair(BaseModel):
    """一次合并请求：把 duplicate_id 并入 primary_id。"""

    primary_id: str = Field(..., min_length=1)
    duplicate_id: str = Field(..., min_length=1)
    merged_data: dict[str, Any] | None = None
    primary_version: int | None = Field(None, ge=1)
    duplicate_version: int | None = Field(None, ge=1)


class BulkMergeResult(BaseModel):
    """批量合并结果。"""

    outcomes: list[BulkMergeOutcome] = Field(default_factory=list)
    remaining: list[MergePair] = Field(
        default_factory=list, description="未合并成功、可重试的记录对"
    )

    @property
    def merged_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "merged")

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "failed")
