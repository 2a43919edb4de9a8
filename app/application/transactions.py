"""
Transaction use cases - manual income/expense entry, listing, deletion
"""
import logging

from sqlalchemy.orm import Session

from app.domain.errors import ValidationError
from app.application.fixed_costs import FixedCostReconciler
from app.infrastructure.db.models import TransactionModel, TRANSACTION_KINDS, KIND_IN, KIND_OUT
from app.infrastructure.db.session import atomic
from app.infrastructure.ledger.repository import LedgerRepository, TransactionFilter
from app.utils.dates import now_utc, parse_date_local, resolve_date_local

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


class CreateTransactionUseCase:
    """
    Use case: записать ручную транзакцию (IN / OUT)
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = LedgerRepository(db)

    def execute_income(
        self, amount: int, date_local: str | None = None, description: str | None = None
    ) -> TransactionModel:
        return self._create(KIND_IN, amount, date_local, description)

    def execute_expense(
        self, amount: int, date_local: str | None = None, description: str | None = None
    ) -> TransactionModel:
        return self._create(KIND_OUT, amount, date_local, description)

    def _create(
        self, kind: str, amount: int, date_local: str | None, description: str | None
    ) -> TransactionModel:
        if amount < 0:
            raise ValidationError("Amount must be >= 0")
        date_local = resolve_date_local(date_local)
        description = (description or "").strip() or None

        with atomic(self.db):
            tx = self.repo.insert_transaction(
                kind=kind,
                amount=amount,
                date_local=date_local,
                ts_utc=now_utc(),
                description=description,
            )

        logger.info("Transaction #%d recorded: %s %d on %s", tx.id, kind, amount, date_local)
        return tx


class DeleteTransactionUseCase:
    """Use case: удалить транзакцию, отвязав оплату fixed cost"""

    def __init__(self, db: Session):
        self.reconciler = FixedCostReconciler(db)

    def execute(self, transaction_id: int) -> None:
        self.reconciler.delete_transaction(transaction_id)


class TransactionQueryService:
    def __init__(self, db: Session):
        self.repo = LedgerRepository(db)

    def list_recent(self, limit: int = 20) -> list[TransactionModel]:
        return self.repo.list_transactions(TransactionFilter(), limit=_page_size(limit))

    def list_between(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        kind: str | None = None,
        limit: int = 30,
        offset: int = 0,
    ) -> list[TransactionModel]:
        """
        Filtered page of transactions, newest first

        Args:
            start_date: inclusive lower bound YYYY-MM-DD (optional)
            end_date: inclusive upper bound YYYY-MM-DD (optional)
            kind: IN / OUT (optional)
            limit: page size (1..500)
            offset: rows to skip

        Raises:
            ValidationError: bad dates, unknown kind, negative offset
        """
        if start_date:
            start_date = parse_date_local(start_date).isoformat()
        if end_date:
            end_date = parse_date_local(end_date).isoformat()
        if kind is not None and kind not in TRANSACTION_KINDS:
            raise ValidationError(f"kind must be IN or OUT, got {kind!r}")
        if offset < 0:
            raise ValidationError("offset must be >= 0")

        predicate = TransactionFilter(kind=kind, date_from=start_date or None, date_to=end_date or None)
        return self.repo.list_transactions(predicate, limit=_page_size(limit), offset=offset)


def _page_size(limit: int) -> int:
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    return min(limit, MAX_PAGE_SIZE)
