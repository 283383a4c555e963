"""initial stock ledger schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the multi-tenant stock ledger schema:
- organizations: tenant root with plan limits
- organization_members: one organization per external user identity
- products: catalog with a denormalized stock counter
- stock_transactions: append-only purchase/sale ledger
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # organizations: Multi-tenant root
    # ============================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=True),
        sa.Column('plan', sa.String(length=16), nullable=False, server_default='free'),
        sa.Column('max_products', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('max_transactions_per_month', sa.Integer(), nullable=False, server_default='500'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'], unique=True)

    # ============================================================================
    # organization_members: user identity -> organization
    # ============================================================================
    op.create_table(
        'organization_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_organization_members_user'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_organization_members_org', 'organization_members', ['organization_id'])

    # ============================================================================
    # products: catalog with stock counter (never negative)
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit_label', sa.String(length=64), nullable=False, server_default='unit'),
        sa.Column('units_per_package', sa.Integer(), nullable=True),
        sa.Column('purchase_price_per_unit', sa.Integer(), nullable=False),
        sa.Column('selling_price_per_unit', sa.Integer(), nullable=False),
        sa.Column('alert_threshold', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_organization_id', 'products', ['organization_id'])
    op.create_index('ix_products_org_name', 'products', ['organization_id', 'name'])

    # ============================================================================
    # stock_transactions: append-only ledger
    # ============================================================================
    # product_id carries no FK: entries outlive deleted products.
    op.create_table(
        'stock_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_stocktx_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_stocktx_price_non_negative'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_transactions_created_at', 'stock_transactions', ['created_at'])
    op.create_index('ix_stocktx_org_created', 'stock_transactions', ['organization_id', 'created_at'])
    op.create_index('ix_stocktx_org_product_type', 'stock_transactions',
                    ['organization_id', 'product_id', 'transaction_type'])


def downgrade():
    op.drop_index('ix_stocktx_org_product_type', table_name='stock_transactions')
    op.drop_index('ix_stocktx_org_created', table_name='stock_transactions')
    op.drop_index('ix_stock_transactions_created_at', table_name='stock_transactions')
    op.drop_table('stock_transactions')

    op.drop_index('ix_products_org_name', table_name='products')
    op.drop_index('ix_products_organization_id', table_name='products')
    op.drop_table('products')

    op.drop_index('ix_organization_members_org', table_name='organization_members')
    op.drop_table('organization_members')

    op.drop_index('ix_organizations_slug', table_name='organizations')
    op.drop_table('organizations')
