"""业务记录 API 路由。

提供联系人、产品、订单的增删改查端点，以及产品图片和库存的登记端点。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.async_session import get_async_session
from src.records.api.schemas import (
    ContactCreate,
    ContactResponse,
    ContactUpdate,
    DeleteResponse,
    ErrorResponse,
    InventoryCreate,
    InventoryResponse,
    OrderCreate,
    OrderResponse,
    OrderUpdate,
    ProductCreate,
    ProductImageCreate,
    ProductImageResponse,
    ProductResponse,
    ProductUpdate,
)
from src.records.domain.models import EntityKind
from src.records.infrastructure.repository import (
    DuplicateError,
    InUseError,
    NotFoundError,
    RecordRepository,
)

logger = logging.getLogger(__name__)

contacts_router = APIRouter(prefix="/api/contacts", tags=["contacts"])
products_router = APIRouter(prefix="/api/products", tags=["products"])
orders_router = APIRouter(prefix="/api/orders", tags=["orders"])


_NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}}


def _not_found(e: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


async def _delete(
    kind: EntityKind, record_id: str, session: AsyncSession
) -> DeleteResponse:
    repo = RecordRepository(session)
    try:
        await repo.delete(kind, record_id)
        await session.commit()
    except NotFoundError as e:
        raise _not_found(e) from e
    except InUseError as e:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return DeleteResponse(message=f"已删除 {kind.value} 记录 {record_id}")


# ---- 联系人 ----


@contacts_router.post(
    "", response_model=ContactResponse, status_code=status.HTTP_201_CREATED
)
async def create_contact(
    request: ContactCreate,
    session: AsyncSession = Depends(get_async_session),
) -> ContactResponse:
    """创建联系人。"""
    repo = RecordRepository(session)
    contact = await repo.create(EntityKind.contact, request.model_dump())
    await session.commit()
    return ContactResponse(**contact.model_dump())


@contacts_router.get("", response_model=list[ContactResponse])
async def list_contacts(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_async_session),
) -> list[ContactResponse]:
    """分页查询联系人，按创建时间倒序。"""
    repo = RecordRepository(session)
    contacts = await repo.list_page(EntityKind.contact, limit=limit, offset=offset)
    return [ContactResponse(**c.model_dump()) for c in contacts]


@contacts_router.get("/{contact_id}", response_model=ContactResponse, responses=_NOT_FOUND)
async def get_contact(
    contact_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> ContactResponse:
    repo = RecordRepository(session)
    contact = await repo.get(EntityKind.contact, contact_id)
    if contact is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"联系人不存在: {contact_id}",
        )
    return ContactResponse(**contact.model_dump())


@contacts_router.patch("/{contact_id}", response_model=ContactResponse, responses=_NOT_FOUND)
async def update_contact(
    contact_id: str,
    request: ContactUpdate,
    session: AsyncSession = Depends(get_async_session),
) -> ContactResponse:
    """更新联系人，未提交的字段保持不变。"""
    repo = RecordRepository(session)
    try:
        contact = await repo.update(
            EntityKind.contact, contact_id, request.model_dump(exclude_unset=True)
        )
        await session.commit()
    except NotFoundError as e:
        raise _not_found(e) from e
    return ContactResponse(**contact.model_dump())


@contacts_router.delete(
    "/{contact_id}",
    response_model=DeleteResponse,
    responses={
        **_NOT_FOUND,
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
async def delete_contact(
    contact_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> DeleteResponse:
    """删除联系人。仍有订单引用时返回 409。"""
    return await _delete(EntityKind.contact, contact_id, session)


# ---- 产品 ----


@products_router.post(
    "", response_model=ProductResponse, status_code=status.HTTP_201_CREATED
)
async def create_product(
    request: ProductCreate,
    session: AsyncSession = Depends(get_async_session),
) -> ProductResponse:
    """创建产品。"""
    repo = RecordRepository(session)
    product = await repo.create(EntityKind.product, request.model_dump())
    await session.commit()
    return ProductResponse(**product.model_dump())


@products_router.get("", response_model=list[ProductResponse])
async def list_products(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_async_session),
) -> list[ProductResponse]:
    repo = RecordRepository(session)
    products = await repo.list_page(EntityKind.product, limit=limit, offset=offset)
    return [ProductResponse(**p.model_dump()) for p in products]


@products_router.get("/{product_id}", response_model=ProductResponse, responses=_NOT_FOUND)
async def get_product(
    product_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> ProductResponse:
    repo = RecordRepository(session)
    product = await repo.get(EntityKind.product, product_id)
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"产品不存在: {product_id}",
        )
    return ProductResponse(**product.model_dump())


@products_router.patch("/{product_id}", response_model=ProductResponse, responses=_NOT_FOUND)
async def update_product(
    product_id: str,
    request: ProductUpdate,
    session: AsyncSession = Depends(get_async_session),
) -> ProductResponse:
    repo = RecordRepository(session)
    try:
        product = await repo.update(
            EntityKind.product, product_id, request.model_dump(exclude_unset=True)
        )
        await session.commit()
    except NotFoundError as e:
        raise _not_found(e) from e
    return ProductResponse(**product.model_dump())


@products_router.delete(
    "/{product_id}",
    response_model=DeleteResponse,
    responses={
        **_NOT_FOUND,
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
async def delete_product(
    product_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> DeleteResponse:
    """删除产品及其图片。仍被订单明细或库存引用时返回 409。"""
    return await _delete(EntityKind.product, product_id, session)


@products_router.post(
    "/{product_id}/images",
    response_model=ProductImageResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_NOT_FOUND,
)
async def add_product_image(
    product_id: str,
    request: ProductImageCreate,
    session: AsyncSession = Depends(get_async_session),
) -> ProductImageResponse:
    """为产品添加图片。"""
    repo = RecordRepository(session)
    try:
        image = await repo.add_image(
            product_id,
            image_url=request.image_url,
            alt_text=request.alt_text,
            sort_order=request.sort_order,
        )
        await session.commit()
    except NotFoundError as e:
        raise _not_found(e) from e
    return ProductImageResponse(**image.model_dump())


@products_router.get("/{product_id}/images", response_model=list[ProductImageResponse])
async def list_product_images(
    product_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> list[ProductImageResponse]:
    repo = RecordRepository(session)
    images = await repo.list_images(product_id)
    return [ProductImageResponse(**i.model_dump()) for i in images]


@products_router.post(
    "/{product_id}/inventory",
    response_model=InventoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_NOT_FOUND,
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
async def add_product_inventory(
    product_id: str,
    request: InventoryCreate,
    session: AsyncSession = Depends(get_async_session),
) -> InventoryResponse:
    """登记产品在某仓库的库存。同一仓库重复登记返回 409。"""
    repo = RecordRepository(session)
    try:
        item = await repo.add_inventory(
            product_id,
            warehouse_id=request.warehouse_id,
            quantity=request.quantity,
            min_quantity=request.min_quantity,
        )
        await session.commit()
    except NotFoundError as e:
        raise _not_found(e) from e
    except DuplicateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return InventoryResponse(**item.model_dump())


@products_router.get("/{product_id}/inventory", response_model=list[InventoryResponse])
async def list_product_inventory(
    product_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> list[InventoryResponse]:
    repo = RecordRepository(session)
    items = await repo.list_inventory(product_id)
    return [InventoryResponse(**i.model_dump()) for i in items]


# ---- 订单 ----


@orders_router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_NOT_FOUND,
)
async def create_order(
    request: OrderCreate,
    session: AsyncSession = Depends(get_async_session),
) -> OrderResponse:
    """创建订单及明细。引用的联系人或产品不存在时返回 404。"""
    repo = RecordRepository(session)
    try:
        order = await repo.create_order(
            request.model_dump(exclude={"items"}),
            [item.model_dump() for item in request.items],
        )
        await session.commit()
    except NotFoundError as e:
        await session.rollback()
        raise _not_found(e) from e
    return OrderResponse(**order.model_dump())


@orders_router.get("", response_model=list[OrderResponse])
async def list_orders(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_async_session),
) -> list[OrderResponse]:
    repo = RecordRepository(session)
    orders = await repo.list_page(EntityKind.order, limit=limit, offset=offset)
    return [OrderResponse(**o.model_dump()) for o in orders]


@orders_router.get("/{order_id}", response_model=OrderResponse, responses=_NOT_FOUND)
async def get_order(
    order_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> OrderResponse:
    repo = RecordRepository(session)
    order = await repo.get(EntityKind.order, order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"订单不存在: {order_id}",
        )
    return OrderResponse(**order.model_dump())


@orders_router.patch("/{order_id}", response_model=OrderResponse, responses=_NOT_FOUND)
async def update_order(
    order_id: str,
    request: OrderUpdate,
    session: AsyncSession = Depends(get_async_session),
) -> OrderResponse:
    repo = RecordRepository(session)
    try:
        order = await repo.update(
            EntityKind.order, order_id, request.model_dump(exclude_unset=True)
        )
        await session.commit()
    except NotFoundError as e:
        await session.rollback()
        raise _not_found(e) from e
    return OrderResponse(**order.model_dump())


@orders_router.delete("/{order_id}", response_model=DeleteResponse, responses=_NOT_FOUND)
async def delete_order(
    order_id: str,
    session: AsyncSession = Depends(get_async_session),
) -> DeleteResponse:
    """删除订单及其明细。"""
    return await _delete(EntityKind.order, order_id, session)
