"""add source, fixed_cost_id and description to transactions

Revision ID: b2c3d4e5f6g7
Revises: a1b2c3d4e5f6
Create Date: 2025-05-09
"""
from alembic import op
import sqlalchemy as sa


revision = 'b2c3d4e5f6g7'
down_revision = 'a1b2c3d4e5f6'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('transactions') as batch:
        batch.add_column(sa.Column('source', sa.String(16), nullable=False, server_default='manual'))
        batch.add_column(sa.Column('fixed_cost_id', sa.Integer(), nullable=True))
        batch.add_column(sa.Column('description', sa.Text(), nullable=True))
    op.create_index('ix_transactions_fixed_cost_id', 'transactions', ['fixed_cost_id'])

    # Transactions booked through the legacy paid_tx_id column come from fixed costs
    conn = op.get_bind()
    conn.execute(sa.text("""
        UPDATE transactions
        SET source = 'fixed_cost',
            fixed_cost_id = (
                SELECT fc.id FROM fixed_costs fc WHERE fc.paid_tx_id = transactions.id
            )
        WHERE id IN (SELECT paid_tx_id FROM fixed_costs WHERE paid_tx_id IS NOT NULL)
    """))


def downgrade():
    op.drop_index('ix_transactions_fixed_cost_id', table_name='transactions')
    with op.batch_alter_table('transactions') as batch:
        batch.drop_column('description')
        batch.drop_column('fixed_cost_id')
        batch.drop_column('source')
