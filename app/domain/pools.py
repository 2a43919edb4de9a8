"""
Pools summary - turns ledger totals into a daily spending recommendation.

Pure integer arithmetic, no storage access. The result is derived on every
read and never persisted.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict

from app.domain.budget_config import BudgetConfig

# Recommendation is shown rounded down to this step
DISPLAY_ROUNDING = 1_000


@dataclass(frozen=True)
class PoolsSummary:
    total_in: int
    total_out: int
    net_balance: int
    min_floor: int
    max_ceil: int
    resilience_days: int
    target_buffer: int
    flexible_fund: int
    recommended_spend_today: int
    today_out: int
    today_remaining: int
    today_remaining_clamped: int
    resilience_days_estimate: int
    overspent_today: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_for_display(value: int) -> int:
    """
    Round down to a whole DISPLAY_ROUNDING step.

    Values smaller than one step are returned unchanged, otherwise small
    budgets (e.g. a ceiling of 500) would always collapse to zero.
    """
    if value < DISPLAY_ROUNDING:
        return value
    return (value // DISPLAY_ROUNDING) * DISPLAY_ROUNDING


def recommend_daily_spend(net_balance: int, config: BudgetConfig) -> int:
    """
    Daily recommendation from the net balance

    Below the buffer target only the flexible share is offered (usually 0).
    Once the buffer is reached the floor applies, and the value is kept
    within [min_floor, max_ceil] even after rounding to DISPLAY_ROUNDING.
    """
    min_floor = config.min_floor
    days = config.resilience_days

    target_buffer = min_floor * days
    flexible_fund = max(0, net_balance - target_buffer)
    per_day_flexible = flexible_fund // days
    buffer_reached = net_balance >= target_buffer

    if buffer_reached:
        raw = max(min_floor, per_day_flexible)
        lower_bound = min_floor
    else:
        raw = per_day_flexible
        lower_bound = 0

    clamped = min(max(raw, lower_bound), config.max_ceil)
    rounded = round_for_display(clamped)
    if buffer_reached:
        rounded = max(rounded, lower_bound)
    return rounded


def estimate_resilience_days(net_balance: int, min_floor: int) -> int:
    """How many days the balance lasts at min_floor per day (never negative)."""
    if min_floor <= 0:
        return 0
    return max(0, net_balance // min_floor)


def compute_pools_summary(
    config: BudgetConfig,
    total_in: int,
    total_out: int,
    today_out: int,
) -> PoolsSummary:
    """
    Build the full summary for the current ledger state

    Args:
        config: validated budgeting config (resilience_days >= 1)
        total_in: sum of all IN transactions
        total_out: sum of all OUT transactions
        today_out: sum of today's OUT transactions

    Returns:
        PoolsSummary
    """
    net_balance = total_in - total_out
    target_buffer = config.min_floor * config.resilience_days
    flexible_fund = max(0, net_balance - target_buffer)

    recommended = recommend_daily_spend(net_balance, config)
    today_remaining = recommended - today_out

    return PoolsSummary(
        total_in=total_in,
        total_out=total_out,
        net_balance=net_balance,
        min_floor=config.min_floor,
        max_ceil=config.max_ceil,
        resilience_days=config.resilience_days,
        target_buffer=target_buffer,
        flexible_fund=flexible_fund,
        recommended_spend_today=recommended,
        today_out=today_out,
        today_remaining=today_remaining,
        today_remaining_clamped=max(0, today_remaining),
        resilience_days_estimate=estimate_resilience_days(net_balance, config.min_floor),
        overspent_today=today_out > recommended,
    )
