"""POS integration schema: tenants, Square credentials, sales, inventory snapshots, sync state

SCHEMA:
1. tenants + tenant_integrations (one integration row per tenant)
2. sales + sale_items with the (tenant_id, source_provider, remote_order_id)
   dedup key for synced orders
3. inventory_items, inventory_snapshots (append-only) and
   inventory_snapshot_runs (one claim per tenant per day)
4. sync_states (checkpoint, last run outcome, run lease)

Revision ID: px001_pos_integration
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'px001_pos_integration'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # STEP 1: Tenants and their POS connection
    # ==========================================================================
    op.create_table('tenants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)

    op.create_table('tenant_integrations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('location_id', sa.String(length=64), nullable=True),
        sa.Column('location_bound_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_tenant_integrations_tenant_id', 'tenant_integrations', ['tenant_id'], unique=True)

    # ==========================================================================
    # STEP 2: Sales
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('source_provider', sa.String(length=16), nullable=False),
        sa.Column('remote_order_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'source_provider', 'remote_order_id', name='uq_sales_tenant_source_remote_order'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_tenant_id', 'sales', ['tenant_id'])
    op.create_index('ix_sales_tenant_date', 'sales', ['tenant_id', 'date'])
    op.create_index('ix_sales_tenant_source_date', 'sales', ['tenant_id', 'source_provider', 'date'])

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])

    # ==========================================================================
    # STEP 3: Inventory and daily snapshots
    # ==========================================================================
    op.create_table('inventory_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('value', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_type', sa.String(length=32), nullable=False),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_inventory_items_tenant_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_items_tenant_id', 'inventory_items', ['tenant_id'])

    op.create_table('inventory_snapshots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('inventory_item_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('value', sa.Numeric(14, 3), nullable=False),
        sa.Column('snapshot_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['inventory_item_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_snapshots_tenant_date', 'inventory_snapshots', ['tenant_id', 'snapshot_date'])
    op.create_index('ix_inventory_snapshots_item_date', 'inventory_snapshots', ['inventory_item_id', 'snapshot_date'])

    op.create_table('inventory_snapshot_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('snapshot_date', sa.Date(), nullable=False),
        sa.Column('item_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'snapshot_date', name='uq_snapshot_runs_tenant_date'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_snapshot_runs_tenant_id', 'inventory_snapshot_runs', ['tenant_id'])

    # ==========================================================================
    # STEP 4: Sync bookkeeping
    # ==========================================================================
    op.create_table('sync_states',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('checkpoint_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_status', sa.String(length=16), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('last_orders_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lease_token', sa.String(length=64), nullable=True),
        sa.Column('lease_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sync_states_tenant_id', 'sync_states', ['tenant_id'], unique=True)


def downgrade():
    op.drop_index('ix_sync_states_tenant_id', table_name='sync_states')
    op.drop_table('sync_states')

    op.drop_index('ix_inventory_snapshot_runs_tenant_id', table_name='inventory_snapshot_runs')
    op.drop_table('inventory_snapshot_runs')

    op.drop_index('ix_inventory_snapshots_item_date', table_name='inventory_snapshots')
    op.drop_index('ix_inventory_snapshots_tenant_date', table_name='inventory_snapshots')
    op.drop_table('inventory_snapshots')

    op.drop_index('ix_inventory_items_tenant_id', table_name='inventory_items')
    op.drop_table('inventory_items')

    op.drop_index('ix_sale_items_sale_id', table_name='sale_items')
    op.drop_table('sale_items')

    op.drop_index('ix_sales_tenant_source_date', table_name='sales')
    op.drop_index('ix_sales_tenant_date', table_name='sales')
    op.drop_index('ix_sales_tenant_id', table_name='sales')
    op.drop_table('sales')

    op.drop_index('ix_tenant_integrations_tenant_id', table_name='tenant_integrations')
    op.drop_table('tenant_integrations')

    op.drop_index('ix_tenants_slug', table_name='tenants')
    op.drop_table('tenants')
