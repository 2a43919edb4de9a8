"""
Budget config use cases - read and update the singleton configuration
"""
import logging
from dataclasses import replace

from sqlalchemy.orm import Session

from app.domain.budget_config import BudgetConfig, validate_coach_mode
from app.infrastructure.db.session import atomic
from app.infrastructure.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)


class BudgetConfigService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = LedgerRepository(db)

    def get_config(self) -> BudgetConfig:
        return self.repo.get_config()

    def update_config(
        self,
        min_floor: int | None = None,
        max_ceil: int | None = None,
        resilience_days: int | None = None,
        coach_mode: str | None = None,
    ) -> BudgetConfig:
        """
        Partially update the config; omitted fields keep their current value

        Raises:
            ValidationError: before anything is written
        """
        current = self.repo.get_config()
        changes = {
            key: value
            for key, value in (
                ("min_floor", min_floor),
                ("max_ceil", max_ceil),
                ("resilience_days", resilience_days),
                ("coach_mode", coach_mode),
            )
            if value is not None
        }
        updated = replace(current, **changes).validate()

        with atomic(self.db):
            self.repo.update_config(updated)

        logger.info(
            "Config updated: min_floor=%d max_ceil=%d resilience_days=%d coach_mode=%s",
            updated.min_floor, updated.max_ceil, updated.resilience_days, updated.coach_mode,
        )
        return updated

    def get_coach_mode(self) -> str:
        return self.repo.get_config().coach_mode

    def set_coach_mode(self, coach_mode: str) -> str:
        validate_coach_mode(coach_mode)
        return self.update_config(coach_mode=coach_mode).coach_mode
