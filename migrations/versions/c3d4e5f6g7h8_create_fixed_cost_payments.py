"""move payment state from fixed_costs into per-month fixed_cost_payments

Revision ID: c3d4e5f6g7h8
Revises: b2c3d4e5f6g7
Create Date: 2025-05-20
"""
from alembic import op
import sqlalchemy as sa


revision = 'c3d4e5f6g7h8'
down_revision = 'b2c3d4e5f6g7'
branch_labels = None
depends_on = None


def upgrade():
    # 1. New table, one row per (fixed cost, month)
    op.create_table(
        'fixed_cost_payments',
        sa.Column('id', sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column('fixed_cost_id', sa.Integer(), sa.ForeignKey('fixed_costs.id'), nullable=False),
        sa.Column('period_ym', sa.String(7), nullable=False),
        sa.Column('paid_date_local', sa.String(10), nullable=True),
        sa.Column('paid_ts_utc', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('tx_id', sa.Integer(), nullable=True),
        sa.UniqueConstraint('fixed_cost_id', 'period_ym', name='uq_fixed_cost_payment_period'),
    )
    op.create_index('ix_fixed_cost_payments_tx_id', 'fixed_cost_payments', ['tx_id'])

    # 2. Backfill from the single-column shape; the month comes from the paid date
    conn = op.get_bind()
    conn.execute(sa.text("""
        INSERT INTO fixed_cost_payments (fixed_cost_id, period_ym, paid_date_local, paid_ts_utc, tx_id)
        SELECT id, substr(paid_date_local, 1, 7), paid_date_local, paid_ts_utc, paid_tx_id
        FROM fixed_costs
        WHERE paid_date_local IS NOT NULL
    """))

    # 3. Drop the legacy columns
    with op.batch_alter_table('fixed_costs') as batch:
        batch.drop_column('paid_tx_id')
        batch.drop_column('paid_ts_utc')
        batch.drop_column('paid_date_local')


def downgrade():
    with op.batch_alter_table('fixed_costs') as batch:
        batch.add_column(sa.Column('paid_date_local', sa.String(10), nullable=True))
        batch.add_column(sa.Column('paid_ts_utc', sa.TIMESTAMP(timezone=True), nullable=True))
        batch.add_column(sa.Column('paid_tx_id', sa.Integer(), nullable=True))

    # Latest period wins when collapsing back to one column
    conn = op.get_bind()
    conn.execute(sa.text("""
        UPDATE fixed_costs
        SET paid_date_local = p.paid_date_local,
            paid_ts_utc = p.paid_ts_utc,
            paid_tx_id = p.tx_id
        FROM (
            SELECT fixed_cost_id, paid_date_local, paid_ts_utc, tx_id,
                   ROW_NUMBER() OVER (PARTITION BY fixed_cost_id ORDER BY period_ym DESC) AS rn
            FROM fixed_cost_payments
        ) AS p
        WHERE p.fixed_cost_id = fixed_costs.id AND p.rn = 1
    """))

    op.drop_index('ix_fixed_cost_payments_tx_id', table_name='fixed_cost_payments')
    op.drop_table('fixed_cost_payments')
