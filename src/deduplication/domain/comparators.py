"""字段比较规则表。

每种实体类型对应一组静态的字段比较规则：参与比较的字段、比较方法、权重，
以及该字段完全一致时是否可以认定为同一实体（身份字段）。
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.records.domain.models import EntityKind


class ComparisonMethod(str, Enum):
    """字段比较方法。"""

    exact = "exact"  # 规范化后完全一致为 100，否则为 0
    fuzzy_text = "fuzzy_text"  # 归一化编辑距离
    token_text = "token_text"  # 词序无关的模糊比较，适合长文本
    phone = "phone"  # 只保留数字后按编辑距离比较
    numeric = "numeric"  # 相对差异越小得分越高
    date = "date"  # 相差天数越少得分越高


class FieldComparator(BaseModel):
    """单个字段的比较规则。"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="比较项名称，同时作为匹配类型输出")
    sources: tuple[str, ...] = Field(..., min_length=1, description="参与比较的记录字段")
    method: ComparisonMethod
    weight: float = Field(..., gt=0.0)
    identity: bool = Field(False, description="完全一致时是否视为同一实体")


COMPARATORS: dict[EntityKind, tuple[FieldComparator, ...]] = {
    EntityKind.contact: (
        FieldComparator(
            name="email", sources=("email",),
            method=ComparisonMethod.exact, weight=4, identity=True,
        ),
        FieldComparator(
            name="phone", sources=("phone",), method=ComparisonMethod.phone, weight=3,
        ),
        FieldComparator(
            name="name", sources=("name",), method=ComparisonMethod.fuzzy_text, weight=2,
        ),
        FieldComparator(
            name="address", sources=("address", "city"),
            method=ComparisonMethod.fuzzy_text, weight=1,
        ),
    ),
    EntityKind.order: (
        FieldComparator(
            name="contact", sources=("contact_id",), method=ComparisonMethod.exact, weight=3,
        ),
        FieldComparator(
            name="total", sources=("total",), method=ComparisonMethod.numeric, weight=2,
        ),
        FieldComparator(
            name="order_date", sources=("order_date",), method=ComparisonMethod.date, weight=2,
        ),
        FieldComparator(
            name="status", sources=("status",), method=ComparisonMethod.exact, weight=1,
        ),
    ),
    EntityKind.product: (
        FieldComparator(
            name="sku", sources=("sku",),
            method=ComparisonMethod.exact, weight=4, identity=True,
        ),
        FieldComparator(
            name="name", sources=("name",), method=ComparisonMethod.fuzzy_text, weight=3,
        ),
        FieldComparator(
            name="price", sources=("price",), method=ComparisonMethod.numeric, weight=1,
        ),
        FieldComparator(
            name="description", sources=("description",),
            method=ComparisonMethod.token_text, weight=1,
        ),
    ),
}


def comparators_for(kind: EntityKind) -> tuple[FieldComparator, ...]:
    """获取实体类型的比较规则。

    Raises:
        KeyError: 实体类型没有比较规则
    """
    return COMPARATORS[kind]
