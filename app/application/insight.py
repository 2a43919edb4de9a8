"""
Coaching insight service - gathers ledger aggregates, selects a rule, frames
it with journal continuity and records significant moments.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.application.coaching_memory import CoachingMemoryJournal
from app.application.fixed_costs import FixedCostReconciler
from app.application.pools import PoolsService
from app.domain.insight import (
    CoachingInsight,
    InsightInputs,
    build_continuity_line,
    build_memory_reflection,
    build_time_context,
    select_insight_rule,
)
from app.infrastructure.db.models import KIND_OUT
from app.infrastructure.ledger.repository import LedgerRepository, TransactionFilter
from app.utils.dates import last_7_days_range, now_local, period_ym

logger = logging.getLogger(__name__)


class CoachingInsightService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = LedgerRepository(db)
        self.pools = PoolsService(db)
        self.journal = CoachingMemoryJournal(db)

    def collect_inputs(self, today: str) -> InsightInputs:
        """Aggregates for one local date. Never fails on an empty ledger."""
        # Unpaid counts below rely on stale payments being gone
        FixedCostReconciler(self.db).cleanup_stale_payments()

        summary = self.pools.get_pools_summary(today)
        start_7d, end_7d = last_7_days_range(today)
        total_out_7d = self.repo.sum_amount(
            TransactionFilter(kind=KIND_OUT, date_from=start_7d, date_to=end_7d)
        )
        unpaid = self.repo.unpaid_fixed_costs(period_ym(today))

        return InsightInputs(
            summary=summary,
            tx_count_total=self.repo.count(TransactionFilter()),
            tx_count_today=self.repo.count(TransactionFilter.on_date(today)),
            total_out_7d=total_out_7d,
            avg_out_7d=total_out_7d // 7,
            days_with_tx_7d=self.repo.count_active_days(
                TransactionFilter(date_from=start_7d, date_to=end_7d)
            ),
            fixed_cost_unpaid_count_month=len(unpaid),
            fixed_cost_unpaid_amount_month=sum(fc.amount for fc in unpaid),
        )

    def get_coaching_insight(self, now: datetime | None = None) -> CoachingInsight:
        """
        Compute today's coaching insight

        Args:
            now: local wall-clock time (default: now in settings.TIMEZONE)

        Returns:
            CoachingInsight with continuity/reflection lines filled in
        """
        now = now or now_local()
        today = now.strftime("%Y-%m-%d")

        inputs = self.collect_inputs(today)
        coach_mode = self.repo.get_config().coach_mode
        last_memory = self.journal.latest()
        ctx = build_time_context(
            now_local=now,
            tx_count_today=inputs.tx_count_today,
            has_memory_today=self.journal.has_entry_for(today),
        )

        insight = select_insight_rule(inputs, coach_mode, ctx)
        insight.continuity_line = build_continuity_line(ctx, last_memory, insight.tone)
        insight.memory_reflection = build_memory_reflection(last_memory, today)

        logger.debug("Insight for %s: rule=%s tone=%s", today, insight.rule_id, insight.tone)

        self.journal.record_if_significant(
            inputs=inputs,
            insight=insight,
            coach_mode=coach_mode,
            today_local=today,
            last_memory=last_memory,
        )
        return insight
