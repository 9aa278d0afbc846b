#!/usr/bin/env python
"""导入示例记录脚本。

向 contacts、products、orders 表写入一批包含重复项的示例数据，
便于在本地体验重复扫描和合并流程。
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.database.models import Base, get_engine
from src.records.infrastructure.models import (
    ContactOrm,
    InventoryOrm,
    OrderItemOrm,
    OrderOrm,
    ProductOrm,
)

# (name, email, phone, city)，其中包含同一邮箱和拼写相近的重复联系人
SAMPLE_CONTACTS = [
    ("Jon Smith", "j@x.com", "555-0100", "Springfield"),
    ("John Smith", "j@x.com", "(555) 0100", "Springfield"),
    ("Acme Corp", "sales@acme.example", "555-0199", "Shelbyville"),
    ("Acme Corp.", None, "555 0199", "Shelbyville"),
    ("Maria Garcia", "maria@example.org", None, "Capital City"),
]

# (name, sku, price)
SAMPLE_PRODUCTS = [
    ("Widget Pro", "WP-001", 19.99),
    ("Widget Pro ", "wp-001", 19.99),
    ("Gadget Mini", "GM-010", 49.0),
]


def seed_sample_records() -> None:
    """写入示例联系人、产品和订单。

    已有同名联系人时跳过整个导入，避免重复执行产生更多重复数据。
    """
    engine = get_engine()
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        existing = session.scalar(
            select(ContactOrm).where(ContactOrm.name == SAMPLE_CONTACTS[0][0])
        )
        if existing is not None:
            print("示例数据已存在，跳过导入")
            return

        print("=" * 60)
        print("开始导入示例记录")
        print("=" * 60)

        contacts = [
            ContactOrm(name=name, email=email, phone=phone, city=city)
            for name, email, phone, city in SAMPLE_CONTACTS
        ]
        products = [
            ProductOrm(name=name, sku=sku, price=price) for name, sku, price in SAMPLE_PRODUCTS
        ]
        session.add_all(contacts + products)
        session.flush()

        # 两个产品在同一仓库都有库存，合并后应累加
        session.add_all(
            [
                InventoryOrm(product_id=products[0].id, warehouse_id="main", quantity=10),
                InventoryOrm(product_id=products[1].id, warehouse_id="main", quantity=4),
            ]
        )

        # 同一联系人、金额相近、日期相差一天的两个订单
        for total, order_date in ((120.0, date(2024, 3, 1)), (125.0, date(2024, 3, 2))):
            order = OrderOrm(
                contact_id=contacts[0].id,
                status="pending",
                total=total,
                order_date=order_date,
            )
            order.items.append(
                OrderItemOrm(product_id=products[0].id, quantity=2, price=total / 2)
            )
            session.add(order)

        session.commit()

        print(f"  联系人: {len(contacts)}")
        print(f"  产品: {len(products)}")
        print("  订单: 2")
        print("=" * 60)
        print("导入完成！可调用 GET /api/contacts/duplicates 查看重复组")


if __name__ == "__main__":
    seed_sample_records()
