"""
Coaching insight rules - deterministic, strictly ordered decision list.

Architecture:
- InsightInputs: everything the rules look at (no storage access here)
- RULES: closed tuple of InsightRule(rule_id, matches, build), evaluated in
  order, first match wins. No scoring, no ties.
- select_insight_rule(): runs the list, always returns an insight ("normal"
  is the unconditional fallback)
- build_continuity_line() / build_memory_reflection(): optional framing
  lines derived from the coaching journal
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.domain.budget_config import COACH_MODE_WATCHFUL
from app.domain.pools import PoolsSummary
from app.utils.money import format_money

TONE_CALM = "calm"
TONE_ALERT = "alert"

RULE_ONBOARDING = "onboarding"
RULE_OVERSPENT_TODAY = "overspent_today"
RULE_NO_TX_TODAY = "no_tx_today"
RULE_FIXED_COST_UNPAID = "fixed_cost_unpaid"
RULE_LOW_BUFFER = "low_buffer"
RULE_NEAR_LIMIT = "near_limit"
RULE_CONSISTENCY_PRAISE = "consistency_praise"
RULE_NORMAL = "normal"

ONBOARDING_TX_THRESHOLD = 5
LOW_BUFFER_MAX_DAYS = 7
CONSISTENCY_MIN_DAYS = 6


@dataclass(frozen=True)
class InsightInputs:
    summary: PoolsSummary
    tx_count_total: int
    tx_count_today: int
    total_out_7d: int
    avg_out_7d: int
    days_with_tx_7d: int
    fixed_cost_unpaid_count_month: int
    fixed_cost_unpaid_amount_month: int


@dataclass(frozen=True)
class TimeContext:
    today_local: str
    time_bucket: str
    is_new_day_first_open: bool


@dataclass(frozen=True)
class MemoryNote:
    """Latest coaching journal entry as seen by the rules."""
    date_local: str
    tone: str
    headline: str


@dataclass
class InsightDebugMeta:
    rule_id: str
    key_numbers: List[int]


@dataclass
class CoachingInsight:
    status_title: str
    bullets: List[str]
    next_step: str
    tone: str
    coach_mode: str
    continuity_line: Optional[str] = None
    memory_reflection: Optional[str] = None
    debug_meta: Optional[InsightDebugMeta] = None

    @property
    def rule_id(self) -> Optional[str]:
        return self.debug_meta.rule_id if self.debug_meta else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def time_bucket_for_hour(hour: int) -> str:
    if 5 <= hour < 10:
        return "morning"
    if 10 <= hour < 15:
        return "midday"
    if 15 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def build_time_context(now_local: datetime, tx_count_today: int, has_memory_today: bool) -> TimeContext:
    return TimeContext(
        today_local=now_local.strftime("%Y-%m-%d"),
        time_bucket=time_bucket_for_hour(now_local.hour),
        is_new_day_first_open=not has_memory_today and tx_count_today == 0,
    )


# ---------------------------------------------------------------------------
# Rule builders
# ---------------------------------------------------------------------------

def _insight(
    rule_id: str,
    key_numbers: List[int],
    coach_mode: str,
    status_title: str,
    bullets: List[str],
    next_step: str,
    tone: str = TONE_CALM,
) -> CoachingInsight:
    return CoachingInsight(
        status_title=status_title,
        bullets=bullets,
        next_step=next_step,
        tone=tone,
        coach_mode=coach_mode,
        debug_meta=InsightDebugMeta(rule_id=rule_id, key_numbers=key_numbers),
    )


def _build_onboarding(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    s = inputs.summary
    return _insight(
        RULE_ONBOARDING,
        [inputs.tx_count_total, s.recommended_spend_today],
        coach_mode,
        status_title=f"Only {inputs.tx_count_total} transactions so far, let's build the habit slowly.",
        bullets=[
            f"You have {inputs.tx_count_total} transactions recorded.",
            f"Today's recommendation is {format_money(s.recommended_spend_today)}.",
        ],
        next_step="Small step: record one transaction today to get into the rhythm.",
    )


def _build_overspent(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    s = inputs.summary
    if coach_mode == COACH_MODE_WATCHFUL:
        next_step = "If you can, stop any extra spending until tomorrow."
    else:
        next_step = (
            "Today is fine if you hold off on extra purchases; "
            f"tomorrow resets with a target of {format_money(s.recommended_spend_today)}."
        )
    return _insight(
        RULE_OVERSPENT_TODAY,
        [s.today_out, s.recommended_spend_today, s.today_remaining],
        coach_mode,
        status_title=f"Today went over the {format_money(s.recommended_spend_today)} limit.",
        bullets=[
            f"Spent today: {format_money(s.today_out)}.",
            f"Remaining today: {format_money(s.today_remaining)}.",
        ],
        next_step=next_step,
        tone=TONE_ALERT,
    )


def _no_tx_next_step(ctx: TimeContext) -> str:
    if ctx.time_bucket == "morning":
        return "One small note this morning makes the day easier to follow."
    if ctx.time_bucket == "night":
        return "The day is almost over; we start again tomorrow."
    return "Small step: record the first transaction of the day."


def _build_no_tx_today(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    s = inputs.summary
    return _insight(
        RULE_NO_TX_TODAY,
        [inputs.tx_count_today, s.recommended_spend_today, s.today_out],
        coach_mode,
        status_title="Nothing recorded today yet, 0 transactions.",
        bullets=[
            f"Today's recommendation is {format_money(s.recommended_spend_today)}.",
            f"Spent today: {format_money(s.today_out)}.",
        ],
        next_step=_no_tx_next_step(ctx),
    )


def _build_fixed_cost_unpaid(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    s = inputs.summary
    return _insight(
        RULE_FIXED_COST_UNPAID,
        [inputs.fixed_cost_unpaid_count_month, inputs.fixed_cost_unpaid_amount_month, s.net_balance],
        coach_mode,
        status_title=f"{inputs.fixed_cost_unpaid_count_month} fixed cost(s) still unpaid this month.",
        bullets=[
            f"Outstanding total: {format_money(inputs.fixed_cost_unpaid_amount_month)}.",
            f"Net balance: {format_money(s.net_balance)}.",
        ],
        next_step="Small step: pick the fixed cost that is due soonest.",
    )


def _build_low_buffer(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    s = inputs.summary
    limit = format_money(s.recommended_spend_today)
    if coach_mode == COACH_MODE_WATCHFUL:
        next_step = f"Prioritise essentials; keep spending under {limit}."
    else:
        next_step = f"Today is fine if spending stays under {limit}."
    return _insight(
        RULE_LOW_BUFFER,
        [s.net_balance, s.target_buffer, s.resilience_days_estimate],
        coach_mode,
        status_title=f"Buffer is not safe yet, it lasts {s.resilience_days_estimate} day(s).",
        bullets=[
            f"Net balance {format_money(s.net_balance)} vs target {format_money(s.target_buffer)}.",
            f"Today's recommendation is {limit}.",
        ],
        next_step=next_step,
        tone=TONE_ALERT,
    )


def _build_near_limit(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    s = inputs.summary
    remaining = format_money(s.today_remaining_clamped)
    if coach_mode == COACH_MODE_WATCHFUL:
        next_step = f"Hold back extra purchases; {remaining} is what's safe for today."
    else:
        next_step = f"Small step: if you need to buy more, choose what matters most under {remaining}."
    return _insight(
        RULE_NEAR_LIMIT,
        [s.today_out, s.recommended_spend_today, s.today_remaining_clamped],
        coach_mode,
        status_title=f"Close to the {format_money(s.recommended_spend_today)} limit.",
        bullets=[
            f"Already spent {format_money(s.today_out)} today.",
            f"{remaining} left for today.",
        ],
        next_step=next_step,
    )


def _build_consistency(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    return _insight(
        RULE_CONSISTENCY_PRAISE,
        [inputs.days_with_tx_7d, inputs.avg_out_7d],
        coach_mode,
        status_title=f"You've been consistent {inputs.days_with_tx_7d} of the last 7 days.",
        bullets=[
            f"Spending over 7 days: {format_money(inputs.total_out_7d)}.",
            f"7-day average: {format_money(inputs.avg_out_7d)} per day.",
            f"Transactions recorded: {inputs.tx_count_total}.",
        ],
        next_step="Keep it up: one note a day for two more days.",
    )


def _build_normal(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    s = inputs.summary
    return _insight(
        RULE_NORMAL,
        [s.net_balance, s.recommended_spend_today],
        coach_mode,
        status_title=f"Today looks steady, balance {format_money(s.net_balance)}.",
        bullets=[
            f"Flexible fund {format_money(s.flexible_fund)} above the buffer.",
            f"Today's recommendation is {format_money(s.recommended_spend_today)}.",
        ],
        next_step=(
            "Small step: spending is safe while it stays under "
            f"{format_money(s.recommended_spend_today)}."
        ),
    )


# ---------------------------------------------------------------------------
# Rule list (order is the priority)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InsightRule:
    rule_id: str
    matches: Callable[[InsightInputs], bool]
    build: Callable[[InsightInputs, str, TimeContext], CoachingInsight] = field(repr=False)


def _is_overspent(inputs: InsightInputs) -> bool:
    s = inputs.summary
    return s.recommended_spend_today > 0 and s.today_out > s.recommended_spend_today


def _is_low_buffer(inputs: InsightInputs) -> bool:
    s = inputs.summary
    return (
        s.target_buffer > 0
        and s.net_balance < s.target_buffer
        and s.resilience_days_estimate <= LOW_BUFFER_MAX_DAYS
    )


def _is_near_limit(inputs: InsightInputs) -> bool:
    s = inputs.summary
    return (
        s.recommended_spend_today > 0
        and s.today_out >= (s.recommended_spend_today * 8) // 10
    )


RULES: tuple[InsightRule, ...] = (
    InsightRule(RULE_ONBOARDING, lambda i: i.tx_count_total < ONBOARDING_TX_THRESHOLD, _build_onboarding),
    InsightRule(RULE_OVERSPENT_TODAY, _is_overspent, _build_overspent),
    InsightRule(RULE_NO_TX_TODAY, lambda i: i.tx_count_today == 0, _build_no_tx_today),
    InsightRule(RULE_FIXED_COST_UNPAID, lambda i: i.fixed_cost_unpaid_count_month > 0, _build_fixed_cost_unpaid),
    InsightRule(RULE_LOW_BUFFER, _is_low_buffer, _build_low_buffer),
    InsightRule(RULE_NEAR_LIMIT, _is_near_limit, _build_near_limit),
    InsightRule(RULE_CONSISTENCY_PRAISE, lambda i: i.days_with_tx_7d >= CONSISTENCY_MIN_DAYS, _build_consistency),
    InsightRule(RULE_NORMAL, lambda i: True, _build_normal),
)


def match_rule(inputs: InsightInputs) -> InsightRule:
    """First rule whose predicate holds."""
    for rule in RULES:
        if rule.matches(inputs):
            return rule
    raise AssertionError("RULES must end with an unconditional fallback")


def select_insight_rule(inputs: InsightInputs, coach_mode: str, ctx: TimeContext) -> CoachingInsight:
    return match_rule(inputs).build(inputs, coach_mode, ctx)


# ---------------------------------------------------------------------------
# Continuity framing
# ---------------------------------------------------------------------------

def build_continuity_line(
    ctx: TimeContext, last_memory: Optional[MemoryNote], tone: str
) -> Optional[str]:
    """
    Tone change vs an earlier day wins; otherwise greet the first open of a new day.
    """
    if last_memory is not None and last_memory.date_local != ctx.today_local:
        if last_memory.tone == TONE_ALERT and tone == TONE_CALM:
            return "Yesterday was tight; today we start again, one step at a time."
        if last_memory.tone == TONE_CALM and tone == TONE_ALERT:
            return "Today is tighter than yesterday. Let's take it slowly."

    if ctx.is_new_day_first_open:
        if ctx.time_bucket == "morning":
            return "This morning we start slowly."
        if ctx.time_bucket == "night":
            return "The day is nearly done; tomorrow we start again."
        return "Today we start slowly."

    return None


def build_memory_reflection(last_memory: Optional[MemoryNote], today_local: str) -> Optional[str]:
    if last_memory is None or last_memory.date_local == today_local:
        return None
    return f"Last note: {last_memory.headline.rstrip('.')}."
