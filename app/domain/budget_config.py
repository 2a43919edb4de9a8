"""
Budget configuration value object
"""
from dataclasses import dataclass, replace

from app.domain.errors import ValidationError

COACH_MODE_CALM = "calm"
COACH_MODE_WATCHFUL = "watchful"
COACH_MODES = (COACH_MODE_CALM, COACH_MODE_WATCHFUL)

DEFAULT_MIN_FLOOR = 50_000
DEFAULT_MAX_CEIL = 200_000
DEFAULT_RESILIENCE_DAYS = 30


def validate_coach_mode(coach_mode: str) -> str:
    if coach_mode not in COACH_MODES:
        raise ValidationError(
            f"coach_mode must be one of {', '.join(COACH_MODES)}, got {coach_mode!r}"
        )
    return coach_mode


@dataclass(frozen=True)
class BudgetConfig:
    """
    Active budgeting rules, passed explicitly into every computation.

    - min_floor: smallest daily allowance once the buffer is reached
    - max_ceil: hard cap for the daily recommendation
    - resilience_days: buffer horizon, also the divisor for flexible funds
    - coach_mode: calm / watchful, changes wording only
    """
    min_floor: int = DEFAULT_MIN_FLOOR
    max_ceil: int = DEFAULT_MAX_CEIL
    resilience_days: int = DEFAULT_RESILIENCE_DAYS
    coach_mode: str = COACH_MODE_CALM

    def validate(self) -> "BudgetConfig":
        """
        Check the invariants of the config

        Returns:
            self, for chaining

        Raises:
            ValidationError: negative bounds, floor above ceiling,
                resilience_days < 1, unknown coach mode
        """
        if self.min_floor < 0 or self.max_ceil < 0:
            raise ValidationError("min_floor and max_ceil must be >= 0")
        if self.min_floor > self.max_ceil:
            raise ValidationError("min_floor must not exceed max_ceil")
        if self.resilience_days < 1:
            raise ValidationError("resilience_days must be >= 1")
        validate_coach_mode(self.coach_mode)
        return self

    def with_coach_mode(self, coach_mode: str) -> "BudgetConfig":
        return replace(self, coach_mode=validate_coach_mode(coach_mode))
