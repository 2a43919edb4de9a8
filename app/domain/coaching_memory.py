"""
Coaching journal policy: when a computed insight is worth remembering.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.domain.insight import (
    CoachingInsight, InsightInputs, MemoryNote, RULE_OVERSPENT_TODAY, TONE_ALERT,
)

STREAK_MILESTONES = (3, 7)


@dataclass(frozen=True)
class MemoryDecision:
    record: bool
    tone_changed: bool
    overspent: bool
    streak_milestone: bool
    first_tx_today: bool


def decide_memory(
    inputs: InsightInputs,
    insight: CoachingInsight,
    last_memory: Optional[MemoryNote],
    has_entry_today: bool,
) -> MemoryDecision:
    """
    Record when today has no entry yet, or when something significant happened:
    tone changed, overspent today, 7-day streak hit 3 or 7, first transaction of the day.
    """
    tone_changed = last_memory is not None and last_memory.tone != insight.tone
    overspent = insight.rule_id == RULE_OVERSPENT_TODAY
    streak_milestone = inputs.days_with_tx_7d in STREAK_MILESTONES
    first_tx_today = inputs.tx_count_today == 1

    significant = tone_changed or overspent or streak_milestone or first_tx_today
    return MemoryDecision(
        record=not has_entry_today or significant,
        tone_changed=tone_changed,
        overspent=overspent,
        streak_milestone=streak_milestone,
        first_tx_today=first_tx_today,
    )


def build_memory_tags(insight: CoachingInsight, decision: MemoryDecision) -> str:
    tags = []
    if insight.rule_id:
        tags.append(insight.rule_id)
    if decision.streak_milestone:
        tags.append("streak")
    if decision.first_tx_today:
        tags.append("first_tx")
    if insight.tone == TONE_ALERT:
        tags.append("alert")
    return ",".join(tags)


def build_memory_context(inputs: InsightInputs, coach_mode: str) -> Dict[str, Any]:
    s = inputs.summary
    return {
        "recommended_spend_today": s.recommended_spend_today,
        "today_out": s.today_out,
        "net_balance": s.net_balance,
        "resilience_days_estimate": s.resilience_days_estimate,
        "unpaid_count": inputs.fixed_cost_unpaid_count_month,
        "mode": coach_mode,
    }
