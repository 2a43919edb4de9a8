"""create ledger tables (config, transactions, fixed_costs, coaching_memory)

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2025-05-01
"""
from alembic import op
import sqlalchemy as sa


revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'config',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('min_floor', sa.BigInteger(), nullable=False),
        sa.Column('max_ceil', sa.BigInteger(), nullable=False),
        sa.Column('resilience_days', sa.Integer(), nullable=False),
        sa.Column('coach_mode', sa.String(16), nullable=False, server_default='calm'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('id = 1', name='ck_config_singleton'),
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column('ts_utc', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('date_local', sa.String(10), nullable=False),
        sa.Column('kind', sa.String(8), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.CheckConstraint('amount >= 0', name='ck_transactions_amount_non_negative'),
    )
    op.create_index('ix_transactions_ts_utc', 'transactions', ['ts_utc'])
    op.create_index('ix_transactions_date_local', 'transactions', ['date_local'])
    op.create_index('ix_transactions_kind', 'transactions', ['kind'])

    # First shape: payment state lived directly on the fixed cost row
    op.create_table(
        'fixed_costs',
        sa.Column('id', sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('paid_date_local', sa.String(10), nullable=True),
        sa.Column('paid_ts_utc', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('paid_tx_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'coaching_memory',
        sa.Column('id', sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column('ts_utc', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('date_local', sa.String(10), nullable=False),
        sa.Column('tone', sa.String(16), nullable=False),
        sa.Column('headline', sa.Text(), nullable=False),
        sa.Column('tags', sa.Text(), nullable=False, server_default=''),
        sa.Column('context_json', sa.JSON(), nullable=True),
    )
    op.create_index('ix_coaching_memory_ts', 'coaching_memory', ['ts_utc'])
    op.create_index('ix_coaching_memory_date', 'coaching_memory', ['date_local'])


def downgrade():
    op.drop_index('ix_coaching_memory_date', table_name='coaching_memory')
    op.drop_index('ix_coaching_memory_ts', table_name='coaching_memory')
    op.drop_table('coaching_memory')
    op.drop_table('fixed_costs')
    op.drop_index('ix_transactions_kind', table_name='transactions')
    op.drop_index('ix_transactions_date_local', table_name='transactions')
    op.drop_index('ix_transactions_ts_utc', table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('config')
