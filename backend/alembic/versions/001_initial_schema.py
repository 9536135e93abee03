"""Initial schema: accounts, connections, customers, orders, sync runs.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ### Accounts table ###
    op.create_table(
        'accounts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False, server_default='My Account'),
        sa.Column('email_salt', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ### Connections table (credential store) ###
    op.create_table(
        'connections',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', sa.String(255), nullable=False),
        sa.Column('platform', sa.String(50), nullable=False, server_default='shopify'),
        sa.Column('platform_domain', sa.String(255), nullable=False),
        sa.Column('access_token_encrypted', sa.Text(), nullable=False),
        sa.Column('scopes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('connected_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('disconnected_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        'ix_connections_owner_platform_active',
        'connections',
        ['owner_id', 'platform', 'is_active'],
    )
    # At most one active connection per owner and platform
    op.create_index(
        'uq_connections_owner_platform_active',
        'connections',
        ['owner_id', 'platform'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    # ### Customers table ###
    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('source_id', sa.BigInteger(), nullable=False),
        sa.Column('source_created_at', sa.DateTime(timezone=True)),
        sa.Column('source_updated_at', sa.DateTime(timezone=True)),
        sa.Column('email_hash', sa.String(64), index=True),
        sa.Column('email_salt', sa.String(64)),
        sa.Column('first_name', sa.String(255)),
        sa.Column('last_name', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('accepts_marketing', sa.Boolean(), server_default=sa.false()),
        sa.Column('total_spent', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('orders_count', sa.Integer(), server_default='0'),
        sa.Column('content_hash', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('synced_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('account_id', 'source_id', name='uq_customers_account_source_id'),
    )

    # ### Orders table ###
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('source_id', sa.BigInteger(), nullable=False),
        sa.Column('order_number', sa.String(50)),
        sa.Column('source_created_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('source_updated_at', sa.DateTime(timezone=True)),
        sa.Column('financial_status', sa.String(50), server_default='pending'),
        sa.Column('fulfillment_status', sa.String(50)),
        sa.Column('subtotal_price', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('total_tax', sa.Numeric(precision=12, scale=2), server_default='0'),
        sa.Column('currency', sa.String(3), server_default='USD'),
        sa.Column('customer_email_hash', sa.String(64)),
        sa.Column('line_items', postgresql.JSONB(), server_default='[]'),
        sa.Column('line_item_count', sa.Integer(), server_default='0'),
        sa.Column('content_hash', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('synced_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('account_id', 'source_id', name='uq_orders_account_source_id'),
    )

    # ### Sync runs table ###
    op.create_table(
        'sync_runs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('sync_type', sa.String(50), nullable=False, server_default='full'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(20), nullable=False, server_default='running'),
        sa.Column('rows_ingested', sa.Integer(), server_default='0'),
        sa.Column('rows_updated', sa.Integer(), server_default='0'),
        sa.Column('rows_skipped', sa.Integer(), server_default='0'),
        sa.Column('shopify_count', sa.Integer(), server_default='0'),
        sa.Column('local_count', sa.Integer(), server_default='0'),
        sa.Column('error_message', sa.Text()),
        sa.CheckConstraint(
            "status IN ('running', 'completed', 'failed')",
            name='ck_sync_runs_status',
        ),
    )


def downgrade() -> None:
    op.drop_table('sync_runs')
    op.drop_table('orders')
    op.drop_table('customers')
    op.drop_index('uq_connections_owner_platform_active', table_name='connections')
    op.drop_index('ix_connections_owner_platform_active', table_name='connections')
    op.drop_table('connections')
    op.drop_table('accounts')
