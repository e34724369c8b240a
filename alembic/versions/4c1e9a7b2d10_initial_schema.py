"""initial_schema

Revision ID: 4c1e9a7b2d10
Revises:
Create Date: 2026-10-19 09:12:41.118204

Production-safe migration: only creates tables that do not exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '4c1e9a7b2d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text('(CURRENT_TIMESTAMP)')


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('password_hash', sa.String(), nullable=False),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_stripe_customer_id'), 'users', ['stripe_customer_id'], unique=False)

    if not table_exists('entitlements'):
        op.create_table('entitlements',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('plan', sa.String(length=32), nullable=False),
            sa.Column('status', sa.String(length=32), nullable=False),
            sa.Column('stripe_session_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('access_token', sa.String(length=128), nullable=True),
            sa.Column('period_start', sa.DateTime(timezone=True), nullable=True),
            sa.Column('period_end', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_entitlements_id'), 'entitlements', ['id'], unique=False)
        op.create_index(op.f('ix_entitlements_user_id'), 'entitlements', ['user_id'], unique=False)
        op.create_index(op.f('ix_entitlements_stripe_customer_id'), 'entitlements', ['stripe_customer_id'], unique=False)
        op.create_index(op.f('ix_entitlements_stripe_subscription_id'), 'entitlements', ['stripe_subscription_id'], unique=False)
        op.create_index(op.f('ix_entitlements_access_token'), 'entitlements', ['access_token'], unique=True)
        # At most one non-canceled record per user
        op.create_index(
            'uq_entitlements_current_user', 'entitlements', ['user_id'], unique=True,
            postgresql_where=sa.text("status != 'canceled'"),
            sqlite_where=sa.text("status != 'canceled'"),
        )

    if not table_exists('payments'):
        op.create_table('payments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('entitlement_id', sa.Integer(), nullable=True),
            sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('currency', sa.String(length=8), nullable=False),
            sa.Column('stripe_invoice_id', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['entitlement_id'], ['entitlements.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
        op.create_index(op.f('ix_payments_user_id'), 'payments', ['user_id'], unique=False)
        op.create_index(op.f('ix_payments_stripe_invoice_id'), 'payments', ['stripe_invoice_id'], unique=True)

    if not table_exists('search_logs'):
        op.create_table('search_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('year', sa.Integer(), nullable=False),
            sa.Column('make', sa.String(length=100), nullable=False),
            sa.Column('model', sa.String(length=100), nullable=False),
            sa.Column('mileage', sa.Integer(), nullable=False),
            sa.Column('results', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_search_logs_id'), 'search_logs', ['id'], unique=False)
        op.create_index(op.f('ix_search_logs_user_id'), 'search_logs', ['user_id'], unique=False)
        op.create_index(op.f('ix_search_logs_created_at'), 'search_logs', ['created_at'], unique=False)

    if not table_exists('saved_vehicles'):
        op.create_table('saved_vehicles',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('year', sa.Integer(), nullable=False),
            sa.Column('make', sa.String(length=100), nullable=False),
            sa.Column('model', sa.String(length=100), nullable=False),
            sa.Column('mileage', sa.Integer(), nullable=False),
            sa.Column('reliability_data', sa.JSON(), nullable=False),
            sa.Column('saved_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_saved_vehicles_id'), 'saved_vehicles', ['id'], unique=False)
        op.create_index(op.f('ix_saved_vehicles_user_id'), 'saved_vehicles', ['user_id'], unique=False)
        op.create_index(op.f('ix_saved_vehicles_saved_at'), 'saved_vehicles', ['saved_at'], unique=False)

    if not table_exists('webhook_logs'):
        op.create_table('webhook_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('event_id', sa.String(), nullable=True),
            sa.Column('event_type', sa.String(), nullable=True),
            sa.Column('processing_status', sa.String(length=32), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_webhook_logs_id'), 'webhook_logs', ['id'], unique=False)
        op.create_index(op.f('ix_webhook_logs_event_id'), 'webhook_logs', ['event_id'], unique=False)
        op.create_index(op.f('ix_webhook_logs_event_type'), 'webhook_logs', ['event_type'], unique=False)
        op.create_index(op.f('ix_webhook_logs_created_at'), 'webhook_logs', ['created_at'], unique=False)

    if not table_exists('rate_limit_counters'):
        op.create_table('rate_limit_counters',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('bucket_key', sa.String(length=255), nullable=False),
            sa.Column('window_start', sa.BigInteger(), nullable=False),
            sa.Column('hits', sa.Integer(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('bucket_key', 'window_start', name='uq_bucket_window')
        )
        op.create_index(op.f('ix_rate_limit_counters_id'), 'rate_limit_counters', ['id'], unique=False)
        op.create_index(op.f('ix_rate_limit_counters_bucket_key'), 'rate_limit_counters', ['bucket_key'], unique=False)


def downgrade() -> None:
    for table in ('rate_limit_counters', 'webhook_logs', 'saved_vehicles', 'search_logs', 'payments', 'entitlements', 'users'):
        if table_exists(table):
            op.drop_table(table)
