"""
SQLAlchemy ORM models (ledger, fixed costs, config, coaching journal)
"""
from datetime import datetime

from sqlalchemy import (
    String, Integer, BigInteger, Text, TIMESTAMP, Boolean, ForeignKey,
    CheckConstraint, UniqueConstraint, Index, JSON, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.db.session import Base


KIND_IN = "IN"
KIND_OUT = "OUT"
TRANSACTION_KINDS = (KIND_IN, KIND_OUT)

SOURCE_MANUAL = "manual"
SOURCE_FIXED_COST = "fixed_cost"


class BudgetConfigModel(Base):
    """
    Singleton budgeting configuration (exactly one row, id = 1)
    """
    __tablename__ = "config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    min_floor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    max_ceil: Mapped[int] = mapped_column(BigInteger, nullable=False)
    resilience_days: Mapped[int] = mapped_column(Integer, nullable=False)
    coach_mode: Mapped[str] = mapped_column(String(16), nullable=False, server_default="calm")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_config_singleton"),
    )


class TransactionModel(Base):
    """
    Ledger entry: manual income/expense or an expense booked by a fixed-cost payment
    """
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ts_utc: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, index=True)
    date_local: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    kind: Mapped[str] = mapped_column(String(8), nullable=False, index=True)  # IN / OUT
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False, server_default=SOURCE_MANUAL)
    # Not a foreign key: legacy rows may reference removed fixed costs
    fixed_cost_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )


class FixedCostModel(Base):
    """Recurring monthly obligation (rent, internet, ...)"""
    __tablename__ = "fixed_costs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class FixedCostPaymentModel(Base):
    """Settlement of one fixed cost for one calendar month (period_ym = YYYY-MM)"""
    __tablename__ = "fixed_cost_payments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    fixed_cost_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("fixed_costs.id"), nullable=False
    )
    period_ym: Mapped[str] = mapped_column(String(7), nullable=False)
    paid_date_local: Mapped[str | None] = mapped_column(String(10), nullable=True)
    paid_ts_utc: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    # -> transactions.id, validated on read (stale links are purged)
    tx_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint('fixed_cost_id', 'period_ym', name='uq_fixed_cost_payment_period'),
    )


class CoachingMemoryModel(Base):
    """Append-only journal of significant coaching moments"""
    __tablename__ = "coaching_memory"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ts_utc: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    date_local: Mapped[str] = mapped_column(String(10), nullable=False)
    tone: Mapped[str] = mapped_column(String(16), nullable=False)
    headline: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    context_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index('ix_coaching_memory_ts', 'ts_utc'),
        Index('ix_coaching_memory_date', 'date_local'),
    )
