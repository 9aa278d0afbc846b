"""业务记录 ORM 模型。

定义联系人、订单、订单明细、产品、产品图片和库存的 SQLAlchemy 模型。
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.models import Base
from src.records.domain.models import (
    RECORD_FIELDS,
    Contact,
    EntityKind,
    InventoryItem,
    Order,
    Product,
    ProductImage,
    Record,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class _RecordMixin:
    """可去重记录的公共列：主键、时间戳和版本号。"""

    __kind__: EntityKind

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_new_id, comment="记录唯一 ID"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, comment="创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
        comment="更新时间",
    )
    version: Mapped[int] = mapped_column(
        Integer, default=1, nullable=False, comment="乐观锁版本号，每次写入递增"
    )

    def to_record(self) -> Record:
        """转换为去重流程使用的通用记录。"""
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        updated_at = self.updated_at
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)

        return Record(
            id=self.id,
            kind=self.__kind__,
            data={name: getattr(self, name) for name in RECORD_FIELDS[self.__kind__]},
            created_at=created_at,
            updated_at=updated_at,
            version=self.version,
        )


class ContactOrm(_RecordMixin, Base):
    """联系人 ORM 模型。"""

    __tablename__ = "contacts"
    __kind__ = EntityKind.contact

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="", comment="姓名")
    email: Mapped[str | None] = mapped_column(String(255), comment="邮箱")
    phone: Mapped[str | None] = mapped_column(String(50), comment="电话")
    address: Mapped[str | None] = mapped_column(String(255), comment="街道地址")
    city: Mapped[str | None] = mapped_column(String(100), comment="城市")
    state: Mapped[str | None] = mapped_column(String(100), comment="州/省")
    zip: Mapped[str | None] = mapped_column(String(20), comment="邮编")
    notes: Mapped[str | None] = mapped_column(Text, comment="备注")

    __table_args__ = (
        Index("idx_contacts_email", "email"),
        Index("idx_contacts_created_at", "created_at"),
        {"comment": "联系人表"},
    )

    def to_domain(self) -> Contact:
        return Contact.from_orm(self)


class OrderOrm(_RecordMixin, Base):
    """订单 ORM 模型。"""

    __tablename__ = "orders"
    __kind__ = EntityKind.order

    contact_id: Mapped[str | None] = mapped_column(
        ForeignKey("contacts.id"), comment="下单联系人 ID"
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending", comment="订单状态"
    )
    total: Mapped[float] = mapped_column(
        Numeric(12, 2, asdecimal=False), nullable=False, default=0, comment="订单总额"
    )
    order_date: Mapped[date | None] = mapped_column(Date, comment="下单日期")
    notes: Mapped[str | None] = mapped_column(Text, comment="备注")

    items: Mapped[list["OrderItemOrm"]] = relationship(
        "OrderItemOrm",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItemOrm.created_at",
    )

    __table_args__ = (
        Index("idx_orders_contact_id", "contact_id"),
        Index("idx_orders_created_at", "created_at"),
        {"comment": "订单表"},
    )

    def to_domain(self) -> Order:
        return Order.from_orm(self)


class OrderItemOrm(Base):
    """订单明细 ORM 模型。"""

    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, comment="所属订单 ID"
    )
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id"), nullable=False, comment="产品 ID"
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="数量")
    price: Mapped[float] = mapped_column(
        Numeric(12, 2, asdecimal=False), nullable=False, default=0, comment="单价"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    order: Mapped["OrderOrm"] = relationship("OrderOrm", back_populates="items")

    __table_args__ = (
        Index("idx_order_items_order_id", "order_id"),
        Index("idx_order_items_product_id", "product_id"),
        {"comment": "订单明细表"},
    )


class ProductOrm(_RecordMixin, Base):
    """产品 ORM 模型。

    SKU 只建索引不设唯一约束，唯一性由合并流程在应用层检查。
    """

    __tablename__ = "products"
    __kind__ = EntityKind.product

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="产品名称")
    sku: Mapped[str | None] = mapped_column(String(100), comment="库存单位编码")
    description: Mapped[str | None] = mapped_column(Text, comment="产品描述")
    price: Mapped[float] = mapped_column(
        Numeric(12, 2, asdecimal=False), nullable=False, default=0, comment="售价"
    )
    category_id: Mapped[str | None] = mapped_column(String(36), comment="分类 ID")
    image_url: Mapped[str | None] = mapped_column(String(500), comment="主图地址")
    data_sheet_url: Mapped[str | None] = mapped_column(String(500), comment="规格书地址")
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, comment="是否上架"
    )

    __table_args__ = (
        Index("idx_products_sku", "sku"),
        Index("idx_products_created_at", "created_at"),
        {"comment": "产品表"},
    )

    def to_domain(self) -> Product:
        return Product.from_orm(self)


class ProductImageOrm(Base):
    """产品图片 ORM 模型。"""

    __tablename__ = "product_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    alt_text: Mapped[str | None] = mapped_column(String(255))
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_product_images_product_id", "product_id"),
        {"comment": "产品图片表"},
    )

    def to_domain(self) -> ProductImage:
        return ProductImage.from_orm(self)


class InventoryOrm(Base):
    """库存 ORM 模型。

    同一产品在同一仓库只有一条库存记录。
    """

    __tablename__ = "inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    warehouse_id: Mapped[str] = mapped_column(String(36), nullable=False, comment="仓库 ID")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        Index("idx_inventory_product_id", "product_id"),
        {"comment": "库存表"},
    )

    def to_domain(self) -> InventoryItem:
        return InventoryItem.from_orm(self)


# 实体类型到 ORM 类的映射
ORM_BY_KIND: dict[EntityKind, type[ContactOrm] | type[OrderOrm] | type[ProductOrm]] = {
    EntityKind.contact: ContactOrm,
    EntityKind.order: OrderOrm,
    EntityKind.product: ProductOrm,
}
