"""
Pools read service - collects ledger aggregates and runs the pools computation.

Pure read-layer: nothing is cached or persisted, every call reflects the
latest committed ledger state.
"""
from sqlalchemy.orm import Session

from app.domain.budget_config import BudgetConfig
from app.domain.pools import PoolsSummary, compute_pools_summary
from app.infrastructure.db.models import KIND_IN, KIND_OUT
from app.infrastructure.ledger.repository import LedgerRepository, TransactionFilter
from app.utils.dates import resolve_date_local


class PoolsService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = LedgerRepository(db)

    def get_pools_summary(
        self, today: str | None = None, config: BudgetConfig | None = None
    ) -> PoolsSummary:
        """
        Args:
            today: local date YYYY-MM-DD used for today_out (default: today)
            config: config override; the stored config is used when omitted
        """
        today = resolve_date_local(today)
        if config is None:
            config = self.repo.get_config()

        total_in = self.repo.sum_amount(TransactionFilter(kind=KIND_IN))
        total_out = self.repo.sum_amount(TransactionFilter(kind=KIND_OUT))
        today_out = self.repo.sum_amount(TransactionFilter.on_date(today, kind=KIND_OUT))

        return compute_pools_summary(
            config=config,
            total_in=total_in,
            total_out=total_out,
            today_out=today_out,
        )

    def get_today_summary(self, today: str | None = None) -> dict:
        """Compact widget for the home screen."""
        summary = self.get_pools_summary(today)
        return {
            "recommended_spend_today": summary.recommended_spend_today,
            "today_out": summary.today_out,
            "today_remaining": summary.today_remaining,
        }
