"""
Ledger Repository - narrow storage interface used by the budgeting core

Nothing here commits: callers wrap multi-step mutations in
app.infrastructure.db.session.atomic().
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from app.domain.budget_config import BudgetConfig
from app.infrastructure.db.models import (
    BudgetConfigModel,
    CoachingMemoryModel,
    FixedCostModel,
    FixedCostPaymentModel,
    TransactionModel,
    KIND_OUT,
    SOURCE_FIXED_COST,
    SOURCE_MANUAL,
)

CONFIG_ID = 1


@dataclass(frozen=True)
class TransactionFilter:
    """
    Predicate for aggregate queries over transactions

    All fields are optional; None means "no restriction".
    Date bounds are inclusive YYYY-MM-DD strings.
    """
    kind: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def on_date(cls, date_local: str, kind: Optional[str] = None) -> "TransactionFilter":
        return cls(kind=kind, date_from=date_local, date_to=date_local)

    def clauses(self) -> list:
        result = []
        if self.kind is not None:
            result.append(TransactionModel.kind == self.kind)
        if self.date_from is not None:
            result.append(TransactionModel.date_local >= self.date_from)
        if self.date_to is not None:
            result.append(TransactionModel.date_local <= self.date_to)
        if self.source is not None:
            result.append(TransactionModel.source == self.source)
        return result


class LedgerRepository:
    """
    Repository over transactions, fixed-cost payments, config and coaching memory
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def sum_amount(self, predicate: TransactionFilter) -> int:
        """Sum of amounts matching the predicate (0 for an empty set)."""
        stmt = select(func.coalesce(func.sum(TransactionModel.amount), 0)).where(
            *predicate.clauses()
        )
        return int(self.db.execute(stmt).scalar_one())

    def count(self, predicate: TransactionFilter) -> int:
        stmt = select(func.count(TransactionModel.id)).where(*predicate.clauses())
        return int(self.db.execute(stmt).scalar_one())

    def count_active_days(self, predicate: TransactionFilter) -> int:
        """Number of distinct local dates with at least one matching transaction."""
        stmt = select(func.count(func.distinct(TransactionModel.date_local))).where(
            *predicate.clauses()
        )
        return int(self.db.execute(stmt).scalar_one())

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def get_config(self) -> BudgetConfig:
        """Сохранённый конфиг или значения по умолчанию, если строки нет."""
        row = self.db.get(BudgetConfigModel, CONFIG_ID)
        if row is None:
            return BudgetConfig()
        return BudgetConfig(
            min_floor=row.min_floor,
            max_ceil=row.max_ceil,
            resilience_days=row.resilience_days,
            coach_mode=row.coach_mode,
        )

    def update_config(self, config: BudgetConfig) -> BudgetConfig:
        """
        Validate and store the config in the singleton row

        Raises:
            ValidationError: if the config breaks its invariants
        """
        config.validate()
        row = self.db.get(BudgetConfigModel, CONFIG_ID)
        if row is None:
            row = BudgetConfigModel(id=CONFIG_ID)
            self.db.add(row)
        row.min_floor = config.min_floor
        row.max_ceil = config.max_ceil
        row.resilience_days = config.resilience_days
        row.coach_mode = config.coach_mode
        self.db.flush()
        return config

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: int) -> Optional[TransactionModel]:
        return self.db.get(TransactionModel, transaction_id)

    def insert_transaction(
        self,
        kind: str,
        amount: int,
        date_local: str,
        ts_utc: datetime,
        source: str = SOURCE_MANUAL,
        fixed_cost_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> TransactionModel:
        tx = TransactionModel(
            ts_utc=ts_utc,
            date_local=date_local,
            kind=kind,
            amount=amount,
            source=source,
            fixed_cost_id=fixed_cost_id,
            description=description,
        )
        self.db.add(tx)
        self.db.flush()  # assign id without committing
        return tx

    def delete_transaction(self, transaction_id: int) -> int:
        """Удалить по id, возвращает число удалённых строк (0 или 1)."""
        return (
            self.db.query(TransactionModel)
            .filter(TransactionModel.id == transaction_id)
            .delete()
        )

    def delete_transactions_for_fixed_cost(self, fixed_cost_id: int) -> int:
        """Удалить все OUT / fixed_cost транзакции с меткой этого fixed cost."""
        return (
            self.db.query(TransactionModel)
            .filter(
                TransactionModel.fixed_cost_id == fixed_cost_id,
                TransactionModel.kind == KIND_OUT,
                TransactionModel.source == SOURCE_FIXED_COST,
            )
            .delete()
        )

    def list_transactions(
        self,
        predicate: TransactionFilter,
        limit: int = 50,
        offset: int = 0,
    ) -> List[TransactionModel]:
        """Новые первыми (по дате, затем timestamp, затем id)."""
        return (
            self.db.query(TransactionModel)
            .filter(*predicate.clauses())
            .order_by(
                TransactionModel.date_local.desc(),
                TransactionModel.ts_utc.desc(),
                TransactionModel.id.desc(),
            )
            .offset(offset)
            .limit(limit)
            .all()
        )

    def is_valid_payment_transaction(self, tx_id: Optional[int], fixed_cost_id: int) -> bool:
        """True if tx_id points at an OUT / fixed_cost transaction of this fixed cost."""
        if tx_id is None:
            return False
        tx = self.get_transaction(tx_id)
        return (
            tx is not None
            and tx.kind == KIND_OUT
            and tx.source == SOURCE_FIXED_COST
            and tx.fixed_cost_id == fixed_cost_id
        )

    # ------------------------------------------------------------------
    # Fixed costs & payments
    # ------------------------------------------------------------------

    def get_fixed_cost(self, fixed_cost_id: int) -> Optional[FixedCostModel]:
        return self.db.get(FixedCostModel, fixed_cost_id)

    def find_payment(self, fixed_cost_id: int, period_ym: str) -> Optional[FixedCostPaymentModel]:
        return (
            self.db.query(FixedCostPaymentModel)
            .filter(
                FixedCostPaymentModel.fixed_cost_id == fixed_cost_id,
                FixedCostPaymentModel.period_ym == period_ym,
            )
            .first()
        )

    def latest_payment(self, fixed_cost_id: int) -> Optional[FixedCostPaymentModel]:
        """Payment row with the most recent period for this fixed cost."""
        return (
            self.db.query(FixedCostPaymentModel)
            .filter(FixedCostPaymentModel.fixed_cost_id == fixed_cost_id)
            .order_by(FixedCostPaymentModel.period_ym.desc(), FixedCostPaymentModel.id.desc())
            .first()
        )

    def payments_for_fixed_cost(self, fixed_cost_id: int) -> List[FixedCostPaymentModel]:
        return (
            self.db.query(FixedCostPaymentModel)
            .filter(FixedCostPaymentModel.fixed_cost_id == fixed_cost_id)
            .all()
        )

    def payments_for_transaction(self, tx_id: int) -> List[FixedCostPaymentModel]:
        return (
            self.db.query(FixedCostPaymentModel)
            .filter(FixedCostPaymentModel.tx_id == tx_id)
            .all()
        )

    def all_payments(self) -> List[FixedCostPaymentModel]:
        return self.db.query(FixedCostPaymentModel).all()

    def upsert_payment(
        self,
        fixed_cost_id: int,
        period_ym: str,
        paid_date_local: Optional[str],
        paid_ts_utc: Optional[datetime],
        tx_id: Optional[int],
    ) -> FixedCostPaymentModel:
        """
        Insert-or-replace on (fixed_cost_id, period_ym)

        Find-then-replace keeps a single row per period on every backend;
        callers run it inside atomic().
        """
        payment = self.find_payment(fixed_cost_id, period_ym)
        if payment is None:
            payment = FixedCostPaymentModel(fixed_cost_id=fixed_cost_id, period_ym=period_ym)
            self.db.add(payment)
        payment.paid_date_local = paid_date_local
        payment.paid_ts_utc = paid_ts_utc
        payment.tx_id = tx_id
        self.db.flush()
        return payment

    def delete_payment(self, fixed_cost_id: int, period_ym: str) -> int:
        return (
            self.db.query(FixedCostPaymentModel)
            .filter(
                FixedCostPaymentModel.fixed_cost_id == fixed_cost_id,
                FixedCostPaymentModel.period_ym == period_ym,
            )
            .delete()
        )

    def delete_payment_row(self, payment: FixedCostPaymentModel) -> None:
        self.db.delete(payment)
        self.db.flush()

    def fixed_costs_with_payment(
        self, period_ym: str
    ) -> List[Tuple[FixedCostModel, Optional[FixedCostPaymentModel]]]:
        """Каждый fixed cost (новые первыми) с его строкой оплаты за период, если она есть."""
        return (
            self.db.query(FixedCostModel, FixedCostPaymentModel)
            .outerjoin(
                FixedCostPaymentModel,
                and_(
                    FixedCostPaymentModel.fixed_cost_id == FixedCostModel.id,
                    FixedCostPaymentModel.period_ym == period_ym,
                ),
            )
            .order_by(FixedCostModel.id.desc())
            .all()
        )

    def unpaid_fixed_costs(self, period_ym: str) -> List[FixedCostModel]:
        """Активные fixed costs без связанной транзакции за период."""
        return (
            self.db.query(FixedCostModel)
            .outerjoin(
                FixedCostPaymentModel,
                and_(
                    FixedCostPaymentModel.fixed_cost_id == FixedCostModel.id,
                    FixedCostPaymentModel.period_ym == period_ym,
                ),
            )
            .filter(
                FixedCostModel.is_active == True,  # noqa: E712
                FixedCostPaymentModel.tx_id.is_(None),
            )
            .order_by(FixedCostModel.id.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Coaching memory
    # ------------------------------------------------------------------

    def append_memory(
        self,
        ts_utc: datetime,
        date_local: str,
        tone: str,
        headline: str,
        tags: str,
        context: Dict[str, Any],
    ) -> CoachingMemoryModel:
        entry = CoachingMemoryModel(
            ts_utc=ts_utc,
            date_local=date_local,
            tone=tone,
            headline=headline,
            tags=tags,
            context_json=context,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def latest_memory(self) -> Optional[CoachingMemoryModel]:
        return (
            self.db.query(CoachingMemoryModel)
            .order_by(CoachingMemoryModel.ts_utc.desc(), CoachingMemoryModel.id.desc())
            .first()
        )

    def memory_for_date(self, date_local: str) -> Optional[CoachingMemoryModel]:
        return (
            self.db.query(CoachingMemoryModel)
            .filter(CoachingMemoryModel.date_local == date_local)
            .order_by(CoachingMemoryModel.ts_utc.desc(), CoachingMemoryModel.id.desc())
            .first()
        )

    def list_memory(self, limit: int) -> List[CoachingMemoryModel]:
        return (
            self.db.query(CoachingMemoryModel)
            .order_by(CoachingMemoryModel.ts_utc.desc(), CoachingMemoryModel.id.desc())
            .limit(limit)
            .all()
        )

    def count_memory(self) -> int:
        return self.db.query(CoachingMemoryModel).count()

    def trim_memory(self, limit: int) -> int:
        """
        Keep only the newest `limit` entries by timestamp

        Returns:
            number of deleted rows
        """
        keep_ids = select(CoachingMemoryModel.id).order_by(
            CoachingMemoryModel.ts_utc.desc(), CoachingMemoryModel.id.desc()
        ).limit(limit)
        keep = [row_id for (row_id,) in self.db.execute(keep_ids).all()]
        query = self.db.query(CoachingMemoryModel)
        if keep:
            query = query.filter(CoachingMemoryModel.id.notin_(keep))
        return query.delete()
