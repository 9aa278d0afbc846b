"""业务记录领域模型。

定义联系人、订单、产品等 Pydantic 领域模型，与 ORM 模型分离。
同时定义去重流程使用的通用 Record 结构。
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityKind(str, Enum):
    """实体类型枚举。

    去重和合并流程按实体类型区分比较规则和依赖关系。
    """

    contact = "contact"
    order = "order"
    product = "product"

    @property
    def collection(self) -> str:
        """对应的 API 集合名（复数形式）。"""
        return f"{self.value}s"

    @classmethod
    def from_collection(cls, collection: str) -> "EntityKind":
        """从 API 集合名解析实体类型。

        Raises:
            ValueError: 未知的集合名
        """
        for kind in cls:
            if kind.collection == collection:
                return kind
        raise ValueError(f"未知的记录集合: {collection}")


# 每种实体参与去重与合并的字段（顺序即展示顺序）
RECORD_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.contact: (
        "name", "email", "phone", "address", "city", "state", "zip", "notes",
    ),
    EntityKind.order: (
        "contact_id", "status", "total", "order_date", "notes",
    ),
    EntityKind.product: (
        "name", "sku", "description", "price", "category_id",
        "image_url", "data_sheet_url", "is_active",
    ),
}


class Record(BaseModel):
    """通用记录模型。

    去重流程按实体类型读取 data 中的字段，不依赖具体的 ORM 类型。
    """

    id: str = Field(..., min_length=1, description="记录唯一 ID")
    kind: EntityKind = Field(..., description="实体类型")
    data: dict[str, Any] = Field(default_factory=dict, description="字段值")
    created_at: datetime = Field(..., description="创建时间")
    updated_at: datetime = Field(..., description="更新时间")
    version: int = Field(default=1, ge=1, description="乐观锁版本号")

    def get(self, name: str, default: Any = None) -> Any:
        """读取字段值，缺失时返回默认值。"""
        return self.data.get(name, default)


class Contact(BaseModel):
    """联系人领域模型。"""

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_orm(cls, orm_obj) -> "Contact":
        return cls(
            id=orm_obj.id,
            name=orm_obj.name,
            email=orm_obj.email,
            phone=orm_obj.phone,
            address=orm_obj.address,
            city=orm_obj.city,
            state=orm_obj.state,
            zip=orm_obj.zip,
            notes=orm_obj.notes,
            created_at=orm_obj.created_at,
            updated_at=orm_obj.updated_at,
            version=orm_obj.version,
        )


class OrderItem(BaseModel):
    """订单明细领域模型。"""

    id: str
    order_id: str
    product_id: str
    quantity: int
    price: float

    @classmethod
    def from_orm(cls, orm_obj) -> "OrderItem":
        return cls(
            id=orm_obj.id,
            order_id=orm_obj.order_id,
            product_id=orm_obj.product_id,
            quantity=orm_obj.quantity,
            price=orm_obj.price,
        )


class Order(BaseModel):
    """订单领域模型。"""

    id: str
    contact_id: str | None = None
    status: str
    total: float
    order_date: date | None = None
    notes: str | None = None
    items: list[OrderItem] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_orm(cls, orm_obj) -> "Order":
        return cls(
            id=orm_obj.id,
            contact_id=orm_obj.contact_id,
            status=orm_obj.status,
            total=orm_obj.total,
            order_date=orm_obj.order_date,
            notes=orm_obj.notes,
            items=[OrderItem.from_orm(i) for i in orm_obj.items],
            created_at=orm_obj.created_at,
            updated_at=orm_obj.updated_at,
            version=orm_obj.version,
        )


class Product(BaseModel):
    """产品领域模型。"""

    id: str
    name: str
    sku: str | None = None
    description: str | None = None
    price: float
    category_id: str | None = None
    image_url: str | None = None
    data_sheet_url: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_orm(cls, orm_obj) -> "Product":
        return cls(
            id=orm_obj.id,
            name=orm_obj.name,
            sku=orm_obj.sku,
            description=orm_obj.description,
            price=orm_obj.price,
            category_id=orm_obj.category_id,
            image_url=orm_obj.image_url,
            data_sheet_url=orm_obj.data_sheet_url,
            is_active=orm_obj.is_active,
            created_at=orm_obj.created_at,
            updated_at=orm_obj.updated_at,
            version=orm_obj.version,
        )


class ProductImage(BaseModel):
    """产品图片领域模型。"""

    id: str
    product_id: str
    image_url: str
    alt_text: str | None = None
    sort_order: int

    @classmethod
    def from_orm(cls, orm_obj) -> "ProductImage":
        return cls(
            id=orm_obj.id,
            product_id=orm_obj.product_id,
            image_url=orm_obj.image_url,
            alt_text=orm_obj.alt_text,
            sort_order=orm_obj.sort_order,
        )


class InventoryItem(BaseModel):
    """库存记录领域模型。"""

    id: str
    product_id: str
    warehouse_id: str
    quantity: int
    min_quantity: int

    @classmethod
    def from_orm(cls, orm_obj) -> "InventoryItem":
        return cls(
            id=orm_obj.id,
            product_id=orm_obj.product_id,
            warehouse_id=orm_obj.warehouse_id,
            quantity=orm_obj.quantity,
            min_quantity=orm_obj.min_quantity,
        )
