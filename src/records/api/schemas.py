"""业务记录 API 请求/响应模型。

JSON 字段统一使用 camelCase。
"""

from datetime import date, datetime

from pydantic import Field, field_validator

from src.shared.schemas import CamelModel


def _blank_to_none(v):
    """空白字符串按未填写处理。"""
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ---- 联系人 ----


class ContactCreate(CamelModel):
    """创建联系人请求。"""

    name: str = Field(..., min_length=1, max_length=200, description="姓名")
    email: str | None = Field(None, max_length=255, description="邮箱")
    phone: str | None = Field(None, max_length=50, description="电话")
    address: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    zip: str | None = Field(None, max_length=20)
    notes: str | None = None

    @field_validator("email", "phone", "address", "city", "state", "zip", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class ContactUpdate(CamelModel):
    """更新联系人请求，仅包含需要修改的字段。"""

    name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    zip: str | None = Field(None, max_length=20)
    notes: str | None = None


class ContactResponse(CamelModel):
    """联系人响应。"""

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


# ---- 产品 ----


class ProductCreate(CamelModel):
    """创建产品请求。"""

    name: str = Field(..., min_length=1, max_length=255, description="产品名称")
    sku: str | None = Field(None, max_length=100, description="SKU")
    description: str | None = None
    price: float = Field(0.0, ge=0.0, description="售价")
    category_id: str | None = None
    image_url: str | None = Field(None, max_length=500)
    data_sheet_url: str | None = Field(None, max_length=500)
    is_active: bool = True

    @field_validator("sku", "description", "category_id", "image_url", "data_sheet_url", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class ProductUpdate(CamelModel):
    """更新产品请求。"""

    name: str | None = Field(None, min_length=1, max_length=255)
    sku: str | None = Field(None, max_length=100)
    description: str | None = None
    price: float | None = Field(None, ge=0.0)
    category_id: str | None = None
    image_url: str | None = Field(None, max_length=500)
    data_sheet_url: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class ProductResponse(CamelModel):
    """产品响应。"""

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


class ProductImageCreate(CamelModel):
    image_url: str = Field(..., min_length=1, max_length=500)
    alt_text: str | None = Field(None, max_length=255)
    sort_order: int | None = Field(None, ge=0, description="排序，不填则追加到末尾")


class ProductImageResponse(CamelModel):
    id: str
    product_id: str
    image_url: str
    alt_text: str | None = None
    sort_order: int


class InventoryCreate(CamelModel):
    warehouse_id: str = Field(..., min_length=1, max_length=36)
    quantity: int = Field(0, ge=0)
    min_quantity: int = Field(0, ge=0)


class InventoryResponse(CamelModel):
    id: str
    product_id: str
    warehouse_id: str
    quantity: int
    min_quantity: int


# ---- 订单 ----


class OrderItemCreate(CamelModel):
    """订单明细。"""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    price: float = Field(0.0, ge=0.0)


class OrderCreate(CamelModel):
    """创建订单请求。"""

    contact_id: str | None = None
    status: str = Field("pending", min_length=1, max_length=30)
    total: float | None = Field(None, ge=0.0, description="订单总额，不填则按明细汇总")
    order_date: date | None = None
    notes: str | None = None
    items: list[OrderItemCreate] = Field(default_factory=list)


class OrderUpdate(CamelModel):
    """更新订单请求（不含明细）。"""

    contact_id: str | None = None
    status: str | None = Field(None, min_length=1, max_length=30)
    total: float | None = Field(None, ge=0.0)
    order_date: date | None = None
    notes: str | None = None


class OrderItemResponse(CamelModel):
    id: str
    order_id: str
    product_id: str
    quantity: int
    price: float


class OrderResponse(CamelModel):
    """订单响应。"""

    id: str
    contact_id: str | None = None
    status: str
    total: float
    order_date: date | None = None
    notes: str | None = None
    items: list[OrderItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    version: int


class DeleteResponse(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(CamelModel):
    """错误响应。"""

    detail: str
