"""
Database Models (SQLAlchemy ORM)

Transactions, ledger entries and orders are insert-only.
Round-up credits are not stored: they are a projection of
transactions under the active rule. Holdings are a rebuildable cache.
"""

from sqlalchemy import (
    Boolean, Column, DateTime, Index, Integer, Numeric, String, UniqueConstraint,
)

from piggy.infrastructure.db.database import Base
from piggy.utils.time import now_ist_naive


class TransactionModel(Base):
    """Ingested UPI transaction"""
    __tablename__ = "piggy_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    txn_id = Column(String(64), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    direction = Column(String(10), nullable=False)
    merchant = Column(String(120), nullable=False, default="")
    category = Column(String(60), nullable=False, default="")
    upi_ref = Column(String(64), nullable=True)
    occurred_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=now_ist_naive)

    __table_args__ = (
        UniqueConstraint("user_id", "txn_id", name="uq_piggy_transaction_user_txn"),
    )


class LedgerEntryModel(Base):
    """Top-up / investment debit - AUDIT RECORD"""
    __tablename__ = "ledger_entry"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String(64), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False)
    amount = Column(Numeric(24, 10), nullable=False)
    entry_type = Column(String(20), nullable=False)
    reference = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=now_ist_naive)

    __table_args__ = (
        Index("ix_ledger_entry_user_created", "user_id", "created_at"),
    )


class OrderModel(Base):
    """Sweep order - AUDIT RECORD"""
    __tablename__ = "piggy_order"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False)
    symbol = Column(String(20), nullable=False)
    side = Column(String(10), nullable=False)
    quantity = Column(Numeric(20, 6), nullable=False)
    price = Column(Numeric(12, 4), nullable=False)
    amount = Column(Numeric(24, 10), nullable=False)
    status = Column(String(10), nullable=False)
    debit_entry_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=now_ist_naive)

    __table_args__ = (
        Index("ix_piggy_order_user_symbol", "user_id", "symbol"),
    )


class HoldingModel(Base):
    """Holding cache per user and symbol"""
    __tablename__ = "holding"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    symbol = Column(String(20), nullable=False)
    units = Column(Numeric(20, 6), nullable=False)
    avg_cost = Column(Numeric(20, 8), nullable=False)
    current_price = Column(Numeric(12, 4), nullable=False)
    updated_at = Column(DateTime, nullable=False, default=now_ist_naive, onupdate=now_ist_naive)

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_holding_user_symbol"),
    )


class UserSettingsModel(Base):
    """Round-up rule and preset selection per user"""
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, unique=True)
    round_to_nearest = Column(Numeric(10, 2), nullable=False)
    min_roundup = Column(Numeric(10, 2), nullable=False)
    max_roundup = Column(Numeric(10, 2), nullable=False)
    portfolio_preset = Column(String(20), nullable=False)
    auto_invest_enabled = Column(Boolean, nullable=False, default=True)
    weekly_target = Column(Numeric(12, 2), nullable=False)
    updated_at = Column(DateTime, nullable=False, default=now_ist_naive, onupdate=now_ist_naive)
