"""去重与合并 API 请求/响应模型。

JSON 字段统一使用 camelCase，记录字段（data、mergedData）中的键也是 camelCase。
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import Field
from pydantic.alias_generators import to_camel, to_snake

from src.deduplication.domain.models import (
    BulkMergeOutcome,
    DuplicateGroup,
    MergeDecision,
    MergePair,
    ScanResult,
)
from src.records.api.schemas import ContactResponse, OrderResponse, ProductResponse
from src.records.domain.models import EntityKind, Record
from src.shared.schemas import CamelModel


class Collection(str, Enum):
    """支持去重的记录集合。"""

    contacts = "contacts"
    orders = "orders"
    products = "products"

    @property
    def kind(self) -> EntityKind:
        return EntityKind.from_collection(self.value)


def camel_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {to_camel(k): v for k, v in data.items()}


def snake_keys(data: dict[str, Any] | None) -> dict[str, Any] | None:
    if data is None:
        return None
    return {to_snake(k): v for k, v in data.items()}


class ErrorDetail(CamelModel):
    """结构化错误信息。"""

    code: str
    message: str
    primary_id: str | None = None
    duplicate_id: str | None = None


class ErrorResponse(CamelModel):
    detail: ErrorDetail


class DuplicateRecordResponse(CamelModel):
    id: str
    kind: EntityKind
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_domain(cls, record: Record) -> "DuplicateRecordResponse":
        return cls(
            id=record.id,
            kind=record.kind,
            data=camel_keys(record.data),
            created_at=record.created_at,
            updated_at=record.updated_at,
            version=record.version,
        )


class DuplicateGroupResponse(CamelModel):
    id: str
    kind: EntityKind
    records: list[DuplicateRecordResponse]
    match_type: str | None = None
    similarity_score: float

    @classmethod
    def from_domain(cls, group: DuplicateGroup) -> "DuplicateGroupResponse":
        return cls(
            id=group.id,
            kind=group.kind,
            records=[DuplicateRecordResponse.from_domain(r) for r in group.records],
            match_type=group.match_type,
            similarity_score=group.similarity_score,
        )


class DuplicatesResponse(CamelModel):
    """重复扫描/批量查重响应。"""

    duplicate_groups: list[DuplicateGroupResponse]
    total_groups: int
    total_duplicate_records: int
    threshold: float
    total_records_checked: int
    not_found_ids: list[str] = Field(default_factory=list)
    warning: str | None = None
    message: str | None = None

    @classmethod
    def from_domain(cls, result: ScanResult) -> "DuplicatesResponse":
        return cls(
            duplicate_groups=[DuplicateGroupResponse.from_domain(g) for g in result.groups],
            total_groups=result.total_groups,
            total_duplicate_records=result.total_duplicate_records,
            threshold=result.threshold,
            total_records_checked=result.total_records_checked,
            not_found_ids=result.not_found_ids,
            warning=result.warning,
            message=result.message,
        )


class BulkFindRequest(CamelModel):
    record_ids: list[str] = Field(default_factory=list, description="待查重的记录 ID")
    threshold: float | None = Field(None, description="相似度阈值，默认 70")


class MergePlanRequest(CamelModel):
    primary_id: str = Field(..., min_length=1)
    duplicate_id: str = Field(..., min_length=1)
    overrides: dict[str, Any] | None = Field(None, description="手动指定的字段值")


class MergePlanResponse(CamelModel):
    """合并规划响应。"""

    kind: EntityKind
    primary_id: str
    duplicate_ids: list[str]
    primary_version: int
    duplicate_versions: dict[str, int]
    merged_data: dict[str, Any]
    field_sources: dict[str, str]

    @classmethod
    def from_domain(cls, decision: MergeDecision) -> "MergePlanResponse":
        return cls(
            kind=decision.kind,
            primary_id=decision.primary.id,
            duplicate_ids=decision.duplicate_ids,
            primary_version=decision.primary.version,
            duplicate_versions={d.id: d.version for d in decision.duplicates},
            merged_data=camel_keys(decision.merged_data),
            field_sources=camel_keys(decision.field_sources),
        )


class MergeRequest(CamelModel):
    """合并请求。"""

    primary_id: str = Field(..., min_length=1, description="保留的主记录 ID")
    duplicate_id: str = Field(..., min_length=1, description="被合并删除的记录 ID")
    merged_data: dict[str, Any] | None = Field(None, description="合并后的字段值")
    primary_version: int | None = Field(None, ge=1, description="请求方看到的主记录版本")
    duplicate_version: int | None = Field(None, ge=1)

    def to_domain(self) -> MergePair:
        return MergePair(
            primary_id=self.primary_id,
            duplicate_id=self.duplicate_id,
            merged_data=snake_keys(self.merged_data),
            primary_version=self.primary_version,
            duplicate_version=self.duplicate_version,
        )

    @classmethod
    def from_domain(cls, pair: MergePair) -> "MergeRequest":
        return cls(
            primary_id=pair.primary_id,
            duplicate_id=pair.duplicate_id,
            merged_data=camel_keys(pair.merged_data) if pair.merged_data else None,
            primary_version=pair.primary_version,
            duplicate_version=pair.duplicate_version,
        )


class MergeResponse(CamelModel):
    success: bool = True
    primary_id: str
    merged_record: ContactResponse | OrderResponse | ProductResponse
    message: str


class BulkMergeRequest(CamelModel):
    merges: list[MergeRequest] = Field(..., min_length=1)


class BulkMergeOutcomeResponse(CamelModel):
    primary_id: str
    duplicate_id: str
    status: Literal["merged", "failed"]
    error_code: str | None = None
    message: str | None = None

    @classmethod
    def from_domain(cls, outcome: BulkMergeOutcome) -> "BulkMergeOutcomeResponse":
        return cls(**outcome.model_dump())


class BulkMergeResponse(CamelModel):
    results: list[BulkMergeOutcomeResponse]
    merged_count: int
    failed_count: int
    remaining: list[MergeRequest]
