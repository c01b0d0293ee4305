"""Create catalog inventory and configuration schema

Revision ID: 001_catalog_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_catalog_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated_nullable=False):
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=updated_nullable),
    ]


def _pricing(price_nullable):
    return [
        sa.Column('price', sa.Integer(), nullable=price_nullable),
        sa.Column('special_price', sa.Integer(), nullable=True),
        sa.Column('special_from', sa.DateTime(timezone=True), nullable=True),
        sa.Column('special_to', sa.DateTime(timezone=True), nullable=True),
        sa.Column('currency', sa.String(3), nullable=True),
    ]


def upgrade():
    """Create warehouses, products, inventory records and the option graph"""

    # ====================
    # WAREHOUSES
    # ====================
    op.create_table(
        'warehouses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(20), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_warehouses_code', 'warehouses', ['code'], unique=True)
    op.create_index('ix_warehouse_active_priority', 'warehouses', ['is_active', 'priority'])

    # ====================
    # PRODUCTS / VARIATIONS / ATTRIBUTES
    # ====================
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(64), nullable=False),
        sa.Column('product_type', sa.String(20), nullable=False,
                  comment='simple, configurable, virtual, downloadable, bundle'),
        *_pricing(price_nullable=False),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)
    op.create_index('ix_product_type_active', 'products', ['product_type', 'is_active'])

    op.create_table(
        'product_variations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('parent_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sku', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        *_pricing(price_nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_product_variations_parent_id', 'product_variations', ['parent_id'])
    op.create_index('ix_product_variations_sku', 'product_variations', ['sku'], unique=True)
    op.create_index('ix_variation_parent_active', 'product_variations', ['parent_id', 'is_active'])

    op.create_table(
        'attributes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_index('ix_attributes_code', 'attributes', ['code'], unique=True)

    op.create_table(
        'attribute_options',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('attribute_id', sa.Uuid(), sa.ForeignKey('attributes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('value', sa.String(100), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.UniqueConstraint('attribute_id', 'value', name='uq_attribute_option_value'),
    )
    op.create_index('ix_attribute_options_attribute_id', 'attribute_options', ['attribute_id'])

    # ====================
    # INVENTORY RECORDS
    # ====================
    op.create_table(
        'inventory_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=True),
        sa.Column('variation_id', sa.Uuid(), sa.ForeignKey('product_variations.id', ondelete='CASCADE'), nullable=True),
        sa.Column('warehouse_id', sa.Uuid(), sa.ForeignKey('warehouses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reserved', sa.Integer(), nullable=False),
        sa.Column('backorders_allowed', sa.Boolean(), nullable=False),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=True),
        sa.Column('shelf_location', sa.String(100), nullable=True),
        sa.Column('batch_number', sa.String(100), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('product_id', 'warehouse_id', name='uq_inventory_product_warehouse'),
        sa.UniqueConstraint('variation_id', 'warehouse_id', name='uq_inventory_variation_warehouse'),
        sa.CheckConstraint('(product_id IS NULL) <> (variation_id IS NULL)', name='ck_inventory_single_item'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_quantity_non_negative'),
        sa.CheckConstraint('reserved >= 0', name='ck_inventory_reserved_non_negative'),
    )
    op.create_index('ix_inventory_records_product_id', 'inventory_records', ['product_id'])
    op.create_index('ix_inventory_records_variation_id', 'inventory_records', ['variation_id'])
    op.create_index('ix_inventory_records_warehouse_id', 'inventory_records', ['warehouse_id'])

    # ====================
    # CONFIGURABLE OPTION GRAPH
    # ====================
    op.create_table(
        'configurable_options',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('attribute_id', sa.Uuid(), sa.ForeignKey('attributes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('input_type', sa.String(20), nullable=False,
                  comment='select, radio, checkbox, color, swatch, text, date, file'),
        sa.Column('is_required', sa.Boolean(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('product_id', 'attribute_id', name='uq_configurable_option_product_attribute'),
    )
    op.create_index('ix_configurable_options_product_id', 'configurable_options', ['product_id'])

    op.create_table(
        'configurable_option_values',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('option_id', sa.Uuid(), sa.ForeignKey('configurable_options.id', ondelete='CASCADE'), nullable=False),
        sa.Column('attribute_option_id', sa.Uuid(), sa.ForeignKey('attribute_options.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price_adjustment', sa.Integer(), nullable=True),
        sa.Column('price_type', sa.String(20), nullable=False, comment='fixed, percentage'),
        sa.Column('weight_adjustment', sa.Float(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.UniqueConstraint('option_id', 'attribute_option_id', name='uq_option_value_attribute_option'),
    )
    op.create_index('ix_configurable_option_values_option_id', 'configurable_option_values', ['option_id'])

    op.create_table(
        'configurable_option_value_variations',
        sa.Column('option_value_id', sa.Uuid(),
                  sa.ForeignKey('configurable_option_values.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('variation_id', sa.Uuid(),
                  sa.ForeignKey('product_variations.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'configuration_rules',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('option_id', sa.Uuid(), sa.ForeignKey('configurable_options.id', ondelete='CASCADE'), nullable=False),
        sa.Column('value_id', sa.Uuid(), sa.ForeignKey('configurable_option_values.id', ondelete='CASCADE'), nullable=True),
        sa.Column('rule_type', sa.String(50), nullable=False),
        sa.Column('target_option_code', sa.String(255), nullable=True),
        sa.Column('target_value_code', sa.String(255), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('custom_validation', sa.Text(), nullable=True),
        sa.Column('price_adjustment', sa.Integer(), nullable=True),
        sa.Column('weight_adjustment', sa.Float(), nullable=True),
        sa.Column('error_message', sa.String(255), nullable=True),
        *_timestamps(updated_nullable=True),
    )
    op.create_index('ix_configuration_rules_option_id', 'configuration_rules', ['option_id'])
    op.create_index('ix_configuration_rules_value_id', 'configuration_rules', ['value_id'])


def downgrade():
    """Drop all catalog tables"""
    op.drop_table('configuration_rules')
    op.drop_table('configurable_option_value_variations')
    op.drop_table('configurable_option_values')
    op.drop_table('configurable_options')
    op.drop_table('inventory_records')
    op.drop_table('attribute_options')
    op.drop_table('attributes')
    op.drop_table('product_variations')
    op.drop_table('products')
    op.drop_table('warehouses')
