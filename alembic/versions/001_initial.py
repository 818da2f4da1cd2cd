# alembic/versions/001_initial.py

"""Initial piggy schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Ingested UPI transactions
    op.create_table('piggy_transaction',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('txn_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('direction', sa.String(length=10), nullable=False),
        sa.Column('merchant', sa.String(length=120), nullable=False),
        sa.Column('category', sa.String(length=60), nullable=False),
        sa.Column('upi_ref', sa.String(length=64), nullable=True),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'txn_id', name='uq_piggy_transaction_user_txn')
    )
    op.create_index('ix_piggy_transaction_user_id', 'piggy_transaction', ['user_id'])

    # Top-ups and investment debits
    op.create_table('ledger_entry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(precision=24, scale=10), nullable=False),
        sa.Column('entry_type', sa.String(length=20), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('entry_id')
    )
    op.create_index('ix_ledger_entry_user_created', 'ledger_entry', ['user_id', 'created_at'])

    # Sweep orders
    op.create_table('piggy_order',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('side', sa.String(length=10), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=20, scale=6), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('amount', sa.Numeric(precision=24, scale=10), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('debit_entry_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id')
    )
    op.create_index('ix_piggy_order_user_symbol', 'piggy_order', ['user_id', 'symbol'])

    # Holding cache
    op.create_table('holding',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('units', sa.Numeric(precision=20, scale=6), nullable=False),
        sa.Column('avg_cost', sa.Numeric(precision=20, scale=8), nullable=False),
        sa.Column('current_price', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'symbol', name='uq_holding_user_symbol')
    )

    op.create_table('user_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('round_to_nearest', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('min_roundup', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('max_roundup', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('portfolio_preset', sa.String(length=20), nullable=False),
        sa.Column('auto_invest_enabled', sa.Boolean(), nullable=False),
        sa.Column('weekly_target', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )


def downgrade():
    op.drop_table('user_settings')
    op.drop_table('holding')
    op.drop_index('ix_piggy_order_user_symbol', table_name='piggy_order')
    op.drop_table('piggy_order')
    op.drop_index('ix_ledger_entry_user_created', table_name='ledger_entry')
    op.drop_table('ledger_entry')
    op.drop_index('ix_piggy_transaction_user_id', table_name='piggy_transaction')
    op.drop_table('piggy_transaction')
