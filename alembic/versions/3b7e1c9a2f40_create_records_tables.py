"""create_records_tables

Revision ID: 3b7e1c9a2f40
Revises:
Create Date: 2026-10-12 09:41:27.518304

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7e1c9a2f40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _record_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.String(length=36), nullable=False, comment='记录唯一 ID'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='更新时间'),
        sa.Column('version', sa.Integer(), nullable=False, comment='乐观锁版本号，每次写入递增'),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'contacts',
        *_record_columns(),
        sa.Column('name', sa.String(length=200), nullable=False, comment='姓名'),
        sa.Column('email', sa.String(length=255), nullable=True, comment='邮箱'),
        sa.Column('phone', sa.String(length=50), nullable=True, comment='电话'),
        sa.Column('address', sa.String(length=255), nullable=True, comment='街道地址'),
        sa.Column('city', sa.String(length=100), nullable=True, comment='城市'),
        sa.Column('state', sa.String(length=100), nullable=True, comment='州/省'),
        sa.Column('zip', sa.String(length=20), nullable=True, comment='邮编'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.PrimaryKeyConstraint('id'),
        comment='联系人表',
    )
    op.create_index('idx_contacts_email', 'contacts', ['email'], unique=False)
    op.create_index('idx_contacts_created_at', 'contacts', ['created_at'], unique=False)

    op.create_table(
        'products',
        *_record_columns(),
        sa.Column('name', sa.String(length=255), nullable=False, comment='产品名称'),
        sa.Column('sku', sa.String(length=100), nullable=True, comment='库存单位编码'),
        sa.Column('description', sa.Text(), nullable=True, comment='产品描述'),
        sa.Column('price', sa.Numeric(precision=12, scale=2, asdecimal=False), nullable=False, comment='售价'),
        sa.Column('category_id', sa.String(length=36), nullable=True, comment='分类 ID'),
        sa.Column('image_url', sa.String(length=500), nullable=True, comment='主图地址'),
        sa.Column('data_sheet_url', sa.String(length=500), nullable=True, comment='规格书地址'),
        sa.Column('is_active', sa.Boolean(), nullable=False, comment='是否上架'),
        sa.PrimaryKeyConstraint('id'),
        comment='产品表',
    )
    op.create_index('idx_products_sku', 'products', ['sku'], unique=False)
    op.create_index('idx_products_created_at', 'products', ['created_at'], unique=False)

    op.create_table(
        'orders',
        *_record_columns(),
        sa.Column('contact_id', sa.String(length=36), nullable=True, comment='下单联系人 ID'),
        sa.Column('status', sa.String(length=30), nullable=False, comment='订单状态'),
        sa.Column('total', sa.Numeric(precision=12, scale=2, asdecimal=False), nullable=False, comment='订单总额'),
        sa.Column('order_date', sa.Date(), nullable=True, comment='下单日期'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.PrimaryKeyConstraint('id'),
        comment='订单表',
    )
    op.create_index('idx_orders_contact_id', 'orders', ['contact_id'], unique=False)
    op.create_index('idx_orders_created_at', 'orders', ['created_at'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False, comment='所属订单 ID'),
        sa.Column('product_id', sa.String(length=36), nullable=False, comment='产品 ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.Column('price', sa.Numeric(precision=12, scale=2, asdecimal=False), nullable=False, comment='单价'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        comment='订单明细表',
    )
    op.create_index('idx_order_items_order_id', 'order_items', ['order_id'], unique=False)
    op.create_index('idx_order_items_product_id', 'order_items', ['product_id'], unique=False)

    op.create_table(
        'product_images',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=False),
        sa.Column('alt_text', sa.String(length=255), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        comment='产品图片表',
    )
    op.create_index('idx_product_images_product_id', 'product_images', ['product_id'], unique=False)

    op.create_table(
        'inventory',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('warehouse_id', sa.String(length=36), nullable=False, comment='仓库 ID'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('min_quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'warehouse_id', name='uq_inventory_product_warehouse'),
        comment='库存表',
    )
    op.create_index('idx_inventory_product_id', 'inventory', ['product_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_inventory_product_id', table_name='inventory')
    op.drop_table('inventory')
    op.drop_index('idx_product_images_product_id', table_name='product_images')
    op.drop_table('product_images')
    op.drop_index('idx_order_items_product_id', table_name='order_items')
    op.drop_index('idx_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('idx_orders_created_at', table_name='orders')
    op.drop_index('idx_orders_contact_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('idx_products_created_at', table_name='products')
    op.drop_index('idx_products_sku', table_name='products')
    op.drop_table('products')
    op.drop_index('idx_contacts_created_at', table_name='contacts')
    op.drop_index('idx_contacts_email', table_name='contacts')
    op.drop_table('contacts')
