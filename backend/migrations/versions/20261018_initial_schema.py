"""initial schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the repair shop schema:
- device hierarchy: platforms > brands > families > device_models
- parts catalog and part_models compatibility links
- sales / sale_items
- transactions: stock ledger (IN, OUT, ADJUST, SALE)
- auth_pins: access PIN with lockout state
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    """Create all tables from scratch."""

    # ============================================================================
    # Device hierarchy
    # ============================================================================
    op.create_table(
        'platforms',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_platforms_name'),
        sa.UniqueConstraint('slug', name='uq_platforms_slug'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'brands',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('platform_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['platform_id'], ['platforms.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('platform_id', 'name', name='uq_brands_platform_name'),
        sa.UniqueConstraint('platform_id', 'slug', name='uq_brands_platform_slug'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_brands_platform_id', 'brands', ['platform_id'])

    op.create_table(
        'families',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('brand_id', 'name', name='uq_families_brand_name'),
        sa.UniqueConstraint('brand_id', 'slug', name='uq_families_brand_slug'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_families_brand_id', 'families', ['brand_id'])

    op.create_table(
        'device_models',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('family_id', 'name', name='uq_device_models_family_name'),
        sa.UniqueConstraint('family_id', 'slug', name='uq_device_models_family_slug'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_device_models_family_id', 'device_models', ['family_id'])
    op.create_index('ix_device_models_slug', 'device_models', ['slug'])

    # ============================================================================
    # parts: catalog; stock only moves together with a ledger row
    # ============================================================================
    op.create_table(
        'parts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('real_cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_parts_sku'),
        sa.CheckConstraint('stock >= 0', name='ck_parts_stock_nonnegative'),
        sa.CheckConstraint('low_stock_threshold >= 0', name='ck_parts_threshold_nonnegative'),
        sa.CheckConstraint('real_cost_cents >= 0', name='ck_parts_real_cost_nonnegative'),
        sa.CheckConstraint('selling_price_cents >= 0', name='ck_parts_selling_price_nonnegative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_parts_name', 'parts', ['name'])

    op.create_table(
        'part_models',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('part_id', sa.Integer(), nullable=False),
        sa.Column('model_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['part_id'], ['parts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['model_id'], ['device_models.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('part_id', 'model_id', name='uq_part_models_part_model'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_part_models_part_id', 'part_models', ['part_id'])
    op.create_index('ix_part_models_model_id', 'part_models', ['model_id'])

    # ============================================================================
    # sales
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='COMPLETED'),
        sa.Column('notes', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_payment_method', 'sales', ['payment_method'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_status_created', 'sales', ['status', 'created_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('part_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['part_id'], ['parts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_part_id', 'sale_items', ['part_id'])

    # ============================================================================
    # transactions: stock ledger
    # ============================================================================
    # quantity: positive magnitude for IN/OUT/SALE, signed delta for ADJUST
    # sale_id: set only on SALE rows; removed with the sale on reversal
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('part_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['part_id'], ['parts.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_type', 'transactions', ['type'])
    op.create_index('ix_transactions_part_id', 'transactions', ['part_id'])
    op.create_index('ix_transactions_sale_id', 'transactions', ['sale_id'])
    op.create_index('ix_transactions_created_at', 'transactions', ['created_at'])
    op.create_index('ix_transactions_part_created', 'transactions', ['part_id', 'created_at'])
    op.create_index('ix_transactions_type_created', 'transactions', ['type', 'created_at'])

    # ============================================================================
    # auth_pins
    # ============================================================================
    op.create_table(
        'auth_pins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pin_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('locked_until', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_auth_pins_is_active', 'auth_pins', ['is_active'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('auth_pins')
    op.drop_table('transactions')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('part_models')
    op.drop_table('parts')
    op.drop_table('device_models')
    op.drop_table('families')
    op.drop_table('brands')
    op.drop_table('platforms')
