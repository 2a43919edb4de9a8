"""
CoachingMemoryJournal - append-only, size-capped log of coaching moments
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.coaching_memory import build_memory_context, build_memory_tags, decide_memory
from app.domain.insight import CoachingInsight, InsightInputs, MemoryNote
from app.infrastructure.db.models import CoachingMemoryModel
from app.infrastructure.db.session import atomic
from app.infrastructure.ledger.repository import LedgerRepository
from app.utils.dates import now_utc

logger = logging.getLogger(__name__)


def _to_note(entry: Optional[CoachingMemoryModel]) -> Optional[MemoryNote]:
    if entry is None:
        return None
    return MemoryNote(date_local=entry.date_local, tone=entry.tone, headline=entry.headline)


class CoachingMemoryJournal:
    def __init__(self, db: Session, limit: int | None = None):
        self.db = db
        self.repo = LedgerRepository(db)
        self.limit = limit if limit is not None else get_settings().COACHING_MEMORY_LIMIT

    def latest(self) -> Optional[MemoryNote]:
        return _to_note(self.repo.latest_memory())

    def has_entry_for(self, date_local: str) -> bool:
        return self.repo.memory_for_date(date_local) is not None

    def list_recent(self, limit: int = 20) -> list[CoachingMemoryModel]:
        return self.repo.list_memory(limit)

    def record_if_significant(
        self,
        inputs: InsightInputs,
        insight: CoachingInsight,
        coach_mode: str,
        today_local: str,
        last_memory: Optional[MemoryNote] = None,
    ) -> Optional[CoachingMemoryModel]:
        """
        Append an entry when the day has none yet or a significant event happened

        Repeating the same computation on the same day is a no-op.

        Returns:
            the new entry, or None when nothing was recorded
        """
        decision = decide_memory(
            inputs=inputs,
            insight=insight,
            last_memory=last_memory,
            has_entry_today=self.has_entry_for(today_local),
        )
        if not decision.record:
            return None

        with atomic(self.db):
            entry = self.repo.append_memory(
                ts_utc=now_utc(),
                date_local=today_local,
                tone=insight.tone,
                headline=insight.status_title,
                tags=build_memory_tags(insight, decision),
                context=build_memory_context(inputs, coach_mode),
            )
            trimmed = self.repo.trim_memory(self.limit)

        logger.info(
            "Coaching memory recorded: rule=%s tone=%s tags=%s (trimmed %d)",
            insight.rule_id, insight.tone, entry.tags, trimmed,
        )
        return entry
