"""业务记录仓库。

提供联系人、订单、产品及其附属数据（订单明细、产品图片、库存）的持久化操作，
并为去重流程提供通用 Record 的批量读取。
"""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

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
from src.records.infrastructure.models import (
    ORM_BY_KIND,
    ContactOrm,
    InventoryOrm,
    OrderItemOrm,
    OrderOrm,
    ProductImageOrm,
    ProductOrm,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """仓库操作错误。"""

    pass


class NotFoundError(RepositoryError):
    """资源未找到错误。"""

    pass


class DuplicateError(RepositoryError):
    """重复记录错误。"""

    pass


class InUseError(RepositoryError):
    """记录仍被其他数据引用，不能删除。"""

    pass


class RecordRepository:
    """业务记录仓库。

    联系人、订单、产品共用一套按实体类型分派的读写方法。
    """

    def __init__(self, session: AsyncSession) -> None:
        """初始化仓库。

        Args:
            session: 异步数据库会话
        """
        self._session = session

    # ---- 通用读取 ----

    async def _get_orm(self, kind: EntityKind, record_id: str, refresh: bool = False):
        orm_cls = ORM_BY_KIND[kind]
        stmt = select(orm_cls).where(orm_cls.id == record_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(
        self, kind: EntityKind, record_id: str, refresh: bool = False
    ) -> Contact | Order | Product | None:
        """按 ID 查询记录的领域模型。

        Args:
            kind: 实体类型
            record_id: 记录 ID
            refresh: 是否忽略会话中的缓存对象，强制从数据库重新加载

        Returns:
            领域模型或 None
        """
        orm_obj = await self._get_orm(kind, record_id, refresh=refresh)
        return orm_obj.to_domain() if orm_obj else None

    async def list_page(
        self, kind: EntityKind, limit: int = 100, offset: int = 0
    ) -> list[Contact | Order | Product]:
        """按创建时间倒序分页查询记录。"""
        orm_cls = ORM_BY_KIND[kind]
        stmt = (
            select(orm_cls)
            .order_by(orm_cls.created_at.desc(), orm_cls.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [orm_obj.to_domain() for orm_obj in result.scalars().all()]

    async def count(self, kind: EntityKind) -> int:
        orm_cls = ORM_BY_KIND[kind]
        result = await self._session.execute(select(func.count()).select_from(orm_cls))
        return result.scalar_one()

    async def load_records(self, kind: EntityKind, limit: int) -> list[Record]:
        """加载用于重复扫描的记录。

        按创建时间正序返回，保证扫描结果的顺序稳定。

        Args:
            kind: 实体类型
            limit: 最多加载的记录数

        Returns:
            Record 列表
        """
        orm_cls = ORM_BY_KIND[kind]
        stmt = (
            select(orm_cls)
            .order_by(orm_cls.created_at, orm_cls.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [orm_obj.to_record() for orm_obj in result.scalars().all()]

    async def get_records(
        self, kind: EntityKind, record_ids: list[str]
    ) -> tuple[list[Record], list[str]]:
        """按 ID 批量读取记录。

        Args:
            kind: 实体类型
            record_ids: 记录 ID 列表

        Returns:
            (按请求顺序排列的已找到记录, 未找到的 ID 列表)
        """
        if not record_ids:
            return [], []

        orm_cls = ORM_BY_KIND[kind]
        stmt = select(orm_cls).where(orm_cls.id.in_(set(record_ids))).execution_options(
            populate_existing=True
        )
        result = await self._session.execute(stmt)
        by_id = {orm_obj.id: orm_obj.to_record() for orm_obj in result.scalars().all()}

        found: list[Record] = []
        not_found: list[str] = []
        seen: set[str] = set()
        for record_id in record_ids:
            if record_id in seen:
                continue
            seen.add(record_id)
            if record_id in by_id:
                found.append(by_id[record_id])
            else:
                not_found.append(record_id)
        return found, not_found

    async def get_record(self, kind: EntityKind, record_id: str) -> Record | None:
        """读取单条记录的最新状态（忽略会话缓存）。"""
        orm_obj = await self._get_orm(kind, record_id, refresh=True)
        return orm_obj.to_record() if orm_obj else None

    # ---- 写入 ----

    async def create(self, kind: EntityKind, values: dict[str, Any]) -> Contact | Product:
        """创建联系人或产品。

        订单需要明细，使用 create_order。

        Args:
            kind: 实体类型（contact 或 product）
            values: 字段值

        Returns:
            创建后的领域模型
        """
        if kind == EntityKind.order:
            raise RepositoryError("订单请使用 create_order 创建")

        orm_obj = ORM_BY_KIND[kind](**self._known_fields(kind, values))
        self._session.add(orm_obj)
        await self._session.flush()
        logger.info(f"已创建 {kind.value} 记录: {orm_obj.id}")
        return orm_obj.to_domain()

    async def create_order(
        self, values: dict[str, Any], items: list[dict[str, Any]]
    ) -> Order:
        """创建订单及其明细。

        Args:
            values: 订单字段值，未提供 total 时按明细汇总
            items: 明细列表，每项包含 product_id、quantity、price

        Returns:
            创建后的订单

        Raises:
            NotFoundError: 联系人或产品不存在
        """
        contact_id = values.get("contact_id")
        if contact_id and await self._session.get(ContactOrm, contact_id) is None:
            raise NotFoundError(f"联系人不存在: {contact_id}")

        order_values = self._known_fields(EntityKind.order, values)
        if order_values.get("total") is None:
            order_values["total"] = round(
                sum(item["quantity"] * item["price"] for item in items), 2
            )

        lines: list[OrderItemOrm] = []
        for item in items:
            if await self._session.get(ProductOrm, item["product_id"]) is None:
                raise NotFoundError(f"产品不存在: {item['product_id']}")
            lines.append(
                OrderItemOrm(
                    product_id=item["product_id"],
                    quantity=item["quantity"],
                    price=item["price"],
                )
            )

        # 显式传入明细集合，避免新对象在异步会话中触发懒加载
        order = OrderOrm(**order_values, items=lines)
        self._session.add(order)
        await self._session.flush()
        logger.info(f"已创建订单: {order.id}（{len(items)} 条明细）")
        return order.to_domain()

    async def update(
        self, kind: EntityKind, record_id: str, values: dict[str, Any]
    ) -> Contact | Order | Product:
        """更新记录字段并递增版本号。

        Raises:
            NotFoundError: 记录不存在
        """
        orm_obj = await self._get_orm(kind, record_id)
        if orm_obj is None:
            raise NotFoundError(f"{kind.value} 记录不存在: {record_id}")

        if kind == EntityKind.order and values.get("contact_id"):
            if await self._session.get(ContactOrm, values["contact_id"]) is None:
                raise NotFoundError(f"联系人不存在: {values['contact_id']}")

        for name, value in self._known_fields(kind, values).items():
            setattr(orm_obj, name, value)
        orm_obj.version += 1

        await self._session.flush()
        return orm_obj.to_domain()

    async def delete(self, kind: EntityKind, record_id: str) -> None:
        """删除记录。

        被订单引用的联系人、被订单明细或库存引用的产品不能删除。

        Raises:
            NotFoundError: 记录不存在
            InUseError: 记录仍被引用
        """
        orm_obj = await self._get_orm(kind, record_id)
        if orm_obj is None:
            raise NotFoundError(f"{kind.value} 记录不存在: {record_id}")

        if kind == EntityKind.contact:
            refs = await self._count(OrderOrm, OrderOrm.contact_id == record_id)
            if refs:
                raise InUseError(f"联系人仍被 {refs} 个订单引用: {record_id}")
        elif kind == EntityKind.product:
            refs = await self._count(OrderItemOrm, OrderItemOrm.product_id == record_id)
            refs += await self._count(InventoryOrm, InventoryOrm.product_id == record_id)
            if refs:
                raise InUseError(f"产品仍被 {refs} 条订单明细或库存引用: {record_id}")
            images = await self._session.execute(
                select(ProductImageOrm).where(ProductImageOrm.product_id == record_id)
            )
            for image in images.scalars().all():
                await self._session.delete(image)

        await self._session.delete(orm_obj)
        await self._session.flush()
        logger.info(f"已删除 {kind.value} 记录: {record_id}")

    # ---- 产品附属数据 ----

    async def add_image(
        self,
        product_id: str,
        image_url: str,
        alt_text: str | None = None,
        sort_order: int | None = None,
    ) -> ProductImage:
        """为产品添加图片，未指定排序时追加到末尾。

        Raises:
            NotFoundError: 产品不存在
        """
        await self._require_product(product_id)
        if sort_order is None:
            result = await self._session.execute(
                select(func.max(ProductImageOrm.sort_order)).where(
                    ProductImageOrm.product_id == product_id
                )
            )
            current_max = result.scalar_one_or_none()
            sort_order = 0 if current_max is None else current_max + 1

        image = ProductImageOrm(
            product_id=product_id,
            image_url=image_url,
            alt_text=alt_text,
            sort_order=sort_order,
        )
        self._session.add(image)
        await self._session.flush()
        return image.to_domain()

    async def list_images(self, product_id: str) -> list[ProductImage]:
        result = await self._session.execute(
            select(ProductImageOrm)
            .where(ProductImageOrm.product_id == product_id)
            .order_by(ProductImageOrm.sort_order, ProductImageOrm.created_at)
        )
        return [image.to_domain() for image in result.scalars().all()]

    async def add_inventory(
        self,
        product_id: str,
        warehouse_id: str,
        quantity: int = 0,
        min_quantity: int = 0,
    ) -> InventoryItem:
        """登记产品在某仓库的库存。

        Raises:
            NotFoundError: 产品不存在
            DuplicateError: 该仓库已有此产品的库存记录
        """
        await self._require_product(product_id)
        item = InventoryOrm(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
            min_quantity=min_quantity,
        )
        self._session.add(item)
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise DuplicateError(
                f"仓库 {warehouse_id} 已有产品 {product_id} 的库存记录"
            ) from e
        return item.to_domain()

    async def list_inventory(self, product_id: str) -> list[InventoryItem]:
        result = await self._session.execute(
            select(InventoryOrm)
            .where(InventoryOrm.product_id == product_id)
            .order_by(InventoryOrm.warehouse_id)
        )
        return [item.to_domain() for item in result.scalars().all()]

    # ---- 内部工具 ----

    async def _require_product(self, product_id: str) -> None:
        if await self._session.get(ProductOrm, product_id) is None:
            raise NotFoundError(f"产品不存在: {product_id}")

    async def _count(self, orm_cls, condition) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(orm_cls).where(condition)
        )
        return result.scalar_one()

    @staticmethod
    def _known_fields(kind: EntityKind, values: dict[str, Any]) -> dict[str, Any]:
        allowed = RECORD_FIELDS[kind]
        return {name: value for name, value in values.items() if name in allowed}
