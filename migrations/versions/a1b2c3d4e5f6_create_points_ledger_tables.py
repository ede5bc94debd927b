"""Create points ledger and redemption tables.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create balances, transactions, accrual rules, campaigns and redemptions."""
    # Points balances (one row per user + tenant account)
    op.create_table(
        'points_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'tenant_id', name='uq_points_balances_user_tenant'),
    )

    # Points transactions (append-only ledger)
    op.create_table(
        'points_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('transaction_type', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('reference_id', sa.String(100), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_points_transactions_account_created',
        'points_transactions',
        ['user_id', 'tenant_id', 'created_at']
    )

    # Accrual rules
    op.create_table(
        'accrual_rules',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('rule_type', sa.String(30), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('points_per_currency', sa.Numeric(10, 2), nullable=True),
        sa.Column('points_per_purchase', sa.Integer(), nullable=True),
        sa.Column('points_to_currency_rate', sa.Numeric(10, 4), nullable=True),
        sa.Column('use_custom_logic', sa.Boolean(), server_default='false'),
        sa.Column('points_expiry_days', sa.Integer(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_accrual_rules_tenant_id', 'accrual_rules', ['tenant_id'])
    op.create_index('ix_accrual_rules_tenant_active', 'accrual_rules', ['tenant_id', 'is_active'])

    # Campaigns
    op.create_table(
        'campaigns',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('campaign_type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('min_order_value', sa.Numeric(10, 2), nullable=True),
        sa.Column('discount_type', sa.String(20), nullable=True),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=True),
        sa.Column('max_discount_cap', sa.Numeric(10, 2), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=True),
        sa.Column('usage_limit_per_user', sa.Integer(), nullable=True),
        sa.Column('global_usage_limit', sa.Integer(), nullable=True),
        sa.Column('current_usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_stackable', sa.Boolean(), server_default='false'),
        sa.Column('cooldown_hours', sa.Integer(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_campaigns_tenant_id', 'campaigns', ['tenant_id'])
    op.create_index('ix_campaigns_status', 'campaigns', ['status'])

    # Redemptions
    op.create_table(
        'redemptions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('campaign_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('points_used', sa.Numeric(10, 2), nullable=True),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('order_value', sa.Numeric(10, 2), nullable=True),
        sa.Column('order_id', sa.String(100), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id']),
    )
    op.create_index('ix_redemptions_campaign_id', 'redemptions', ['campaign_id'])
    op.create_index('ix_redemptions_status', 'redemptions', ['status'])
    op.create_index('ix_redemptions_user_tenant', 'redemptions', ['user_id', 'tenant_id'])
    op.create_index(
        'ix_redemptions_campaign_user_status',
        'redemptions',
        ['campaign_id', 'user_id', 'status']
    )


def downgrade():
    """Drop ledger tables."""
    op.drop_index('ix_redemptions_campaign_user_status', table_name='redemptions')
    op.drop_index('ix_redemptions_user_tenant', table_name='redemptions')
    op.drop_index('ix_redemptions_status', table_name='redemptions')
    op.drop_index('ix_redemptions_campaign_id', table_name='redemptions')
    op.drop_table('redemptions')

    op.drop_index('ix_campaigns_status', table_name='campaigns')
    op.drop_index('ix_campaigns_tenant_id', table_name='campaigns')
    op.drop_table('campaigns')

    op.drop_index('ix_accrual_rules_tenant_active', table_name='accrual_rules')
    op.drop_index('ix_accrual_rules_tenant_id', table_name='accrual_rules')
    op.drop_table('accrual_rules')

    op.drop_index('ix_points_transactions_account_created', table_name='points_transactions')
    op.drop_table('points_transactions')

    op.drop_table('points_balances')
