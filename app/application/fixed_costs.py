"""
Fixed costs - catalogue CRUD and monthly payment reconciliation.

Invariant kept here: for a (fixed_cost_id, period_ym) at most one payment row
exists, and a non-null tx_id points at an existing OUT / fixed_cost
transaction of the same fixed cost. Rows violating the second half are stale
and get purged before being read as "paid".

Every mutation runs inside a single atomic() scope.
"""
import logging
from typing import Any

from sqlalchemy.orm import Session

from app.domain.errors import NotFound, ValidationError
from app.infrastructure.db.models import (
    FixedCostModel, FixedCostPaymentModel, KIND_OUT, SOURCE_FIXED_COST,
)
from app.infrastructure.db.session import atomic
from app.infrastructure.ledger.repository import LedgerRepository
from app.utils.dates import now_utc, parse_date_local, period_ym, resolve_date_local, today_local

logger = logging.getLogger(__name__)


def _require_positive_id(value: int, label: str) -> None:
    if value is None or value <= 0:
        raise ValidationError(f"Invalid {label} id: {value}")


# ============================================================================
# Catalogue
# ============================================================================


class FixedCostCatalog:
    def __init__(self, db: Session):
        self.db = db
        self.repo = LedgerRepository(db)

    def add_fixed_cost(self, name: str, amount: int) -> FixedCostModel:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Fixed cost name must not be empty")
        if amount < 0:
            raise ValidationError("Fixed cost amount must be >= 0")

        with atomic(self.db):
            fc = FixedCostModel(name=name, amount=amount, is_active=True)
            self.db.add(fc)
            self.db.flush()

        logger.info("Fixed cost #%d added: %s (%d)", fc.id, fc.name, fc.amount)
        return fc

    def set_active(self, fixed_cost_id: int, is_active: bool) -> FixedCostModel:
        _require_positive_id(fixed_cost_id, "fixed cost")
        fc = self.repo.get_fixed_cost(fixed_cost_id)
        if fc is None:
            raise NotFound(f"Fixed cost #{fixed_cost_id} not found")
        with atomic(self.db):
            fc.is_active = is_active
        return fc

    def list_fixed_costs(self, today: str | None = None) -> list[dict[str, Any]]:
        """
        All fixed costs (newest first) with their payment state for the current month

        Stale payment rows are purged first so is_paid is trustworthy.
        """
        today = resolve_date_local(today)
        period = period_ym(today)
        FixedCostReconciler(self.db).cleanup_stale_payments()

        result = []
        for fc, payment in self.repo.fixed_costs_with_payment(period):
            result.append({
                "id": fc.id,
                "name": fc.name,
                "amount": fc.amount,
                "is_active": fc.is_active,
                "period_ym": period,
                "is_paid": payment is not None and payment.tx_id is not None,
                "paid_date_local": payment.paid_date_local if payment else None,
                "paid_ts_utc": payment.paid_ts_utc if payment else None,
                "paid_tx_id": payment.tx_id if payment else None,
            })
        return result


# ============================================================================
# Reconciliation
# ============================================================================


class FixedCostReconciler:
    """
    Keeps fixed_cost_payments and transactions in sync.

    mark_paid / mark_unpaid are idempotent: repeating the call leaves the
    store unchanged apart from the refreshed paid date.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = LedgerRepository(db)

    def _get_fixed_cost(self, fixed_cost_id: int) -> FixedCostModel:
        _require_positive_id(fixed_cost_id, "fixed cost")
        fc = self.repo.get_fixed_cost(fixed_cost_id)
        if fc is None:
            raise NotFound(f"Fixed cost #{fixed_cost_id} not found")
        return fc

    def mark_paid(self, fixed_cost_id: int, date_local: str | None = None) -> FixedCostPaymentModel:
        """
        Оплатить fixed cost за месяц date_local (по умолчанию сегодня)

        Args:
            fixed_cost_id: ID of the fixed cost
            date_local: paid date YYYY-MM-DD (optional)

        Returns:
            the payment row for the period

        Raises:
            ValidationError: invalid id/date, negative fixed cost amount
            NotFound: fixed cost does not exist
        """
        fc = self._get_fixed_cost(fixed_cost_id)
        if fc.amount < 0:
            raise ValidationError(f"Fixed cost #{fixed_cost_id} has a negative amount")
        paid_date = resolve_date_local(date_local)
        period = period_ym(paid_date)
        paid_ts = now_utc()

        with atomic(self.db):
            existing = self.repo.find_payment(fixed_cost_id, period)

            if existing is not None and self.repo.is_valid_payment_transaction(existing.tx_id, fixed_cost_id):
                # Уже оплачено: обновляем только дату оплаты, транзакция сохраняет свою дату
                existing.paid_date_local = paid_date
                existing.paid_ts_utc = paid_ts
                self.db.flush()
                payment = existing
                created = False
            else:
                if existing is not None:
                    logger.warning(
                        "Purging stale payment for fixed cost #%d period %s (tx_id=%s)",
                        fixed_cost_id, period, existing.tx_id,
                    )
                    self.repo.delete_payment_row(existing)

                tx = self.repo.insert_transaction(
                    kind=KIND_OUT,
                    amount=fc.amount,
                    date_local=paid_date,
                    ts_utc=paid_ts,
                    source=SOURCE_FIXED_COST,
                    fixed_cost_id=fixed_cost_id,
                    description=fc.name,
                )
                payment = self.repo.upsert_payment(
                    fixed_cost_id=fixed_cost_id,
                    period_ym=period,
                    paid_date_local=paid_date,
                    paid_ts_utc=paid_ts,
                    tx_id=tx.id,
                )
                created = True

        logger.info(
            "Fixed cost #%d marked paid for %s (tx_id=%s, new=%s)",
            fixed_cost_id, period, payment.tx_id, created,
        )
        return payment

    def resolve_unpaid_period(self, fixed_cost_id: int, date_local: str | None) -> str | None:
        """
        Period to clear for mark_unpaid

        Explicit date -> its month. Otherwise the current month when it has a
        payment row, else the most recent period with any payment row.
        """
        if date_local:
            return period_ym(parse_date_local(date_local).isoformat())

        current = period_ym(today_local())
        if self.repo.find_payment(fixed_cost_id, current) is not None:
            return current

        latest = self.repo.latest_payment(fixed_cost_id)
        return latest.period_ym if latest is not None else None

    def mark_unpaid(self, fixed_cost_id: int, date_local: str | None = None) -> str | None:
        """
        Отменить оплату за месяц

        Returns:
            the cleared period, or None when there was nothing to clear
        """
        self._get_fixed_cost(fixed_cost_id)
        period = self.resolve_unpaid_period(fixed_cost_id, date_local)
        if period is None:
            return None

        with atomic(self.db):
            payment = self.repo.find_payment(fixed_cost_id, period)
            if payment is None:
                return None
            if self.repo.is_valid_payment_transaction(payment.tx_id, fixed_cost_id):
                self.repo.delete_transaction(payment.tx_id)
            elif payment.tx_id is not None:
                logger.warning(
                    "Stale link on fixed cost #%d period %s (tx_id=%s), transaction kept",
                    fixed_cost_id, period, payment.tx_id,
                )
            self.repo.delete_payment(fixed_cost_id, period)

        logger.info("Fixed cost #%d marked unpaid for %s", fixed_cost_id, period)
        return period

    def delete_fixed_cost(self, fixed_cost_id: int) -> None:
        """Удалить fixed cost вместе с оплатами и всеми их транзакциями."""
        self._get_fixed_cost(fixed_cost_id)

        with atomic(self.db):
            payments = self.repo.payments_for_fixed_cost(fixed_cost_id)
            for payment in payments:
                # Только ссылки на собственную транзакцию этого fixed cost
                if self.repo.is_valid_payment_transaction(payment.tx_id, fixed_cost_id):
                    self.repo.delete_transaction(payment.tx_id)
            # Legacy-строки могут иметь метку без строки оплаты
            self.repo.delete_transactions_for_fixed_cost(fixed_cost_id)
            for payment in payments:
                self.repo.delete_payment_row(payment)
            self.db.query(FixedCostModel).filter(FixedCostModel.id == fixed_cost_id).delete()

        logger.info("Fixed cost #%d deleted (%d payment row(s))", fixed_cost_id, len(payments))

    def delete_transaction(self, transaction_id: int) -> None:
        """
        Delete a ledger entry, unlinking any payment that points at it

        The payment row itself stays (with tx_id NULL), so the month reads as unpaid.

        Raises:
            ValidationError: transaction_id <= 0
            NotFound: no such transaction
        """
        _require_positive_id(transaction_id, "transaction")

        with atomic(self.db):
            for payment in self.repo.payments_for_transaction(transaction_id):
                payment.tx_id = None
                payment.paid_date_local = None
                payment.paid_ts_utc = None
            self.db.flush()
            deleted = self.repo.delete_transaction(transaction_id)
            if deleted == 0:
                raise NotFound(f"Transaction #{transaction_id} not found")

        logger.info("Transaction #%d deleted", transaction_id)

    def cleanup_stale_payments(self) -> int:
        """
        Remove payment rows without a transaction link or with a link that
        no longer resolves to this fixed cost's OUT / fixed_cost transaction

        Returns:
            number of purged rows
        """
        purged = 0
        with atomic(self.db):
            for payment in self.repo.all_payments():
                if not self.repo.is_valid_payment_transaction(payment.tx_id, payment.fixed_cost_id):
                    self.repo.delete_payment_row(payment)
                    purged += 1
        if purged:
            logger.warning("Purged %d stale fixed cost payment row(s)", purged)
        return purged
