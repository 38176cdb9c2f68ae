"""Initial ledger schema: employees, catalog, sales, stock movements

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration creates:
1. employees (role/status gate every ledger operation)
2. products and product_variants (store/warehouse quantities, non-negative)
3. sales (VENDA / DEVOLUCAO / TROCA headers, invoice unique among live rows)
4. stock_movements (append-only movement log)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _soft_delete_columns():
    return [
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by_employee_id', sa.Integer(), nullable=True),
    ]


def upgrade():
    # ==========================================================================
    # 1. EMPLOYEES
    # ==========================================================================
    op.create_table('employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        *_soft_delete_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_employees_email'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('employees', schema=None) as batch_op:
        batch_op.create_index('ix_employees_status', ['status'], unique=False)
        batch_op.create_index('ix_employees_deleted_at', ['deleted_at'], unique=False)

    # ==========================================================================
    # 2. CATALOG
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('model', sa.String(length=64), nullable=True),
        sa.Column('is_consigned', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        *_soft_delete_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_name', ['name'], unique=False)
        batch_op.create_index('ix_products_deleted_at', ['deleted_at'], unique=False)

    op.create_table('product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=False),
        sa.Column('color', sa.String(length=64), nullable=True),
        sa.Column('size', sa.String(length=32), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('store_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('warehouse_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        *_soft_delete_columns(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('store_quantity >= 0', name='ck_variants_store_quantity_non_negative'),
        sa.CheckConstraint('warehouse_quantity >= 0', name='ck_variants_warehouse_quantity_non_negative'),
        sa.CheckConstraint('price_cents >= 0', name='ck_variants_price_non_negative'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_variants', schema=None) as batch_op:
        batch_op.create_index('ix_product_variants_product_id', ['product_id'], unique=False)
        batch_op.create_index('ix_product_variants_deleted_at', ['deleted_at'], unique=False)
        batch_op.create_index(
            'uq_product_variants_reference_active', ['reference'], unique=True,
            sqlite_where=sa.text('deleted_at IS NULL'),
            postgresql_where=sa.text('deleted_at IS NULL'),
        )

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('discount_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('original_sale_id', sa.Integer(), nullable=True),
        sa.Column('return_destination', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        *_soft_delete_columns(),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['original_sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('discount_bps >= 0 AND discount_bps <= 10000', name='ck_sales_discount_range'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index('ix_sales_employee_id', ['employee_id'], unique=False)
        batch_op.create_index('ix_sales_original_sale_id', ['original_sale_id'], unique=False)
        batch_op.create_index('ix_sales_created_at', ['created_at'], unique=False)
        batch_op.create_index('ix_sales_deleted_at', ['deleted_at'], unique=False)
        batch_op.create_index('ix_sales_type_created', ['transaction_type', 'created_at'], unique=False)
        batch_op.create_index(
            'uq_sales_invoice_number_active', ['invoice_number'], unique=True,
            sqlite_where=sa.text('deleted_at IS NULL'),
            postgresql_where=sa.text('deleted_at IS NULL'),
        )

    # ==========================================================================
    # 4. STOCK MOVEMENTS (append-only)
    # ==========================================================================
    op.create_table('stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('store_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('warehouse_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('origin', sa.String(length=32), nullable=True),
        sa.Column('destination', sa.String(length=32), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('unit_price_cents', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        *_soft_delete_columns(),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_movements_quantity_positive'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_movements', schema=None) as batch_op:
        batch_op.create_index('ix_stock_movements_variant_id', ['variant_id'], unique=False)
        batch_op.create_index('ix_stock_movements_employee_id', ['employee_id'], unique=False)
        batch_op.create_index('ix_stock_movements_kind', ['kind'], unique=False)
        batch_op.create_index('ix_stock_movements_deleted_at', ['deleted_at'], unique=False)
        batch_op.create_index('ix_movements_variant_created', ['variant_id', 'created_at'], unique=False)
        batch_op.create_index('ix_movements_sale_kind', ['sale_id', 'kind'], unique=False)


def downgrade():
    # Drop tables in reverse order of creation (respect foreign keys)
    op.drop_table('stock_movements')
    op.drop_table('sales')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_table('employees')
