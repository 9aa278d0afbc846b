"""合并仓库。

提供合并事务中使用的数据库操作：行锁、带版本条件的更新和删除，
以及按实体类型把依赖数据从重复记录迁移到主记录。
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.records.domain.models import EntityKind
from src.records.infrastructure.models import (
    ORM_BY_KIND,
    InventoryOrm,
    OrderItemOrm,
    OrderOrm,
    ProductImageOrm,
    ProductOrm,
)

logger = logging.getLogger(__name__)


class MergeRepository:
    """合并仓库。

    所有写操作都在调用方的事务内执行，提交与回滚由调用方负责。
    """

    def __init__(self, session: AsyncSession) -> None:
        """初始化仓库。

        Args:
            session: 异步数据库会话
        """
        self._session = session

    async def lock_records(
        self, kind: EntityKind, record_ids: list[str]
    ) -> dict[str, int]:
        """锁定记录行并读取当前版本号。

        按 ID 排序加锁，避免并发合并互相等待。

        Args:
            kind: 实体类型
            record_ids: 记录 ID 列表

        Returns:
            {记录 ID: 当前版本号}，不存在的记录不在结果中
        """
        orm_cls = ORM_BY_KIND[kind]
        stmt = (
            select(orm_cls.id, orm_cls.version)
            .where(orm_cls.id.in_(sorted(set(record_ids))))
            .order_by(orm_cls.id)
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        return {row.id: row.version for row in result.all()}

    async def update_if_version(
        self,
        kind: EntityKind,
        record_id: str,
        expected_version: int,
        values: dict[str, Any],
    ) -> bool:
        """版本号匹配时更新记录并递增版本号。

        Returns:
            是否更新成功；版本号不匹配或记录不存在时返回 False
        """
        orm_cls = ORM_BY_KIND[kind]
        stmt = (
            update(orm_cls)
            .where(orm_cls.id == record_id, orm_cls.version == expected_version)
            .values(
                **values,
                version=expected_version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def delete_if_version(
        self, kind: EntityKind, record_id: str, expected_version: int
    ) -> bool:
        """版本号匹配时删除记录。"""
        orm_cls = ORM_BY_KIND[kind]
        stmt = (
            delete(orm_cls)
            .where(orm_cls.id == record_id, orm_cls.version == expected_version)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def find_sku_owner(self, sku: str, exclude_ids: list[str]) -> str | None:
        """查找使用该 SKU 的其他产品（不区分大小写）。

        Returns:
            冲突产品的 ID，没有冲突时返回 None
        """
        stmt = (
            select(ProductOrm.id)
            .where(
                func.lower(ProductOrm.sku) == sku.strip().lower(),
                ProductOrm.id.not_in(exclude_ids),
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def repoint_dependents(
        self, kind: EntityKind, duplicate_id: str, primary_id: str
    ) -> int:
        """把依赖重复记录的数据迁移到主记录。

        Returns:
            受影响的依赖行数
        """
        if kind == EntityKind.contact:
            return await self._repoint_contact(duplicate_id, primary_id)
        if kind == EntityKind.product:
            return await self._repoint_product(duplicate_id, primary_id)
        if kind == EntityKind.order:
            return await self._repoint_order(duplicate_id, primary_id)
        raise ValueError(f"未知的实体类型: {kind}")

    async def _repoint_contact(self, duplicate_id: str, primary_id: str) -> int:
        """订单改为引用主联系人。"""
        result = await self._session.execute(
            update(OrderOrm)
            .where(OrderOrm.contact_id == duplicate_id)
            .values(contact_id=primary_id, version=OrderOrm.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _repoint_product(self, duplicate_id: str, primary_id: str) -> int:
        """迁移订单明细、库存和图片。

        主产品已在某仓库有库存时，重复产品在该仓库的库存并入主产品的库存行。
        图片排在主产品现有图片之后。
        """
        affected = 0

        result = await self._session.execute(
            update(OrderItemOrm)
            .where(OrderItemOrm.product_id == duplicate_id)
            .values(product_id=primary_id)
            .execution_options(synchronize_session=False)
        )
        affected += result.rowcount

        primary_stock = {
            row.warehouse_id: row
            for row in (
                await self._session.execute(
                    select(
                        InventoryOrm.id, InventoryOrm.warehouse_id, InventoryOrm.min_quantity
                    ).where(
                        InventoryOrm.product_id == primary_id
                    )
                )
            ).all()
        }
        duplicate_stock = (
            await self._session.execute(
                select(
                    InventoryOrm.id,
                    InventoryOrm.warehouse_id,
                    InventoryOrm.quantity,
                    InventoryOrm.min_quantity,
                ).where(InventoryOrm.product_id == duplicate_id)
            )
        ).all()
        for row in duplicate_stock:
            target = primary_stock.get(row.warehouse_id)
            if target is None:
                await self._session.execute(
                    update(InventoryOrm)
                    .where(InventoryOrm.id == row.id)
                    .values(product_id=primary_id)
                    .execution_options(synchronize_session=False)
                )
            else:
                await self._session.execute(
                    update(InventoryOrm)
                    .where(InventoryOrm.id == target.id)
                    .values(
                        quantity=InventoryOrm.quantity + row.quantity,
                        min_quantity=max(target.min_quantity, row.min_quantity),
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                await self._session.execute(
                    delete(InventoryOrm)
                    .where(InventoryOrm.id == row.id)
                    .execution_options(synchronize_session=False)
                )
            affected += 1

        max_order = (
            await self._session.execute(
                select(func.max(ProductImageOrm.sort_order)).where(
                    ProductImageOrm.product_id == primary_id
                )
            )
        ).scalar_one_or_none()
        next_order = 0 if max_order is None else max_order + 1
        images = (
            await self._session.execute(
                select(ProductImageOrm.id)
                .where(ProductImageOrm.product_id == duplicate_id)
                .order_by(ProductImageOrm.sort_order, ProductImageOrm.created_at)
            )
        ).scalars().all()
        for offset, image_id in enumerate(images):
            await self._session.execute(
                update(ProductImageOrm)
                .where(ProductImageOrm.id == image_id)
                .values(product_id=primary_id, sort_order=next_order + offset)
                .execution_options(synchronize_session=False)
            )
        affected += len(images)

        return affected

    async def _repoint_order(self, duplicate_id: str, primary_id: str) -> int:
        """迁移订单明细。

        同一产品的明细合并为一行：数量相加，单价取较高者。
        """
        # 产品 ID -> (明细 ID, 单价)
        primary_lines: dict[str, tuple[str, float]] = {
            row.product_id: (row.id, row.price)
            for row in (
                await self._session.execute(
                    select(OrderItemOrm.id, OrderItemOrm.product_id, OrderItemOrm.price).where(
                        OrderItemOrm.order_id == primary_id
                    )
                )
            ).all()
        }
        duplicate_lines = (
            await self._session.execute(
                select(
                    OrderItemOrm.id,
                    OrderItemOrm.product_id,
                    OrderItemOrm.quantity,
                    OrderItemOrm.price,
                )
                .where(OrderItemOrm.order_id == duplicate_id)
                .order_by(OrderItemOrm.created_at)
            )
        ).all()

        for line in duplicate_lines:
            target = primary_lines.get(line.product_id)
            if target is None:
                await self._session.execute(
                    update(OrderItemOrm)
                    .where(OrderItemOrm.id == line.id)
                    .values(order_id=primary_id)
                    .execution_options(synchronize_session=False)
                )
                primary_lines[line.product_id] = (line.id, line.price)
                continue

            target_id, target_price = target
            price = max(target_price, line.price)
            await self._session.execute(
                update(OrderItemOrm)
                .where(OrderItemOrm.id == target_id)
                .values(quantity=OrderItemOrm.quantity + line.quantity, price=price)
                .execution_options(synchronize_session=False)
            )
            await self._session.execute(
                delete(OrderItemOrm)
                .where(OrderItemOrm.id == line.id)
                .execution_options(synchronize_session=False)
            )
            primary_lines[line.product_id] = (target_id, price)

        return len(duplicate_lines)
