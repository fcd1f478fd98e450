# =============================================
# File: rechargeace/services/value_analyzer.py
# Purpose: Find longer plans that beat re-buying the baseline plan, with auditable savings
# =============================================
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from rechargeace.services.models import Plan, ScoredPlan, ValuePlan


def repeat_purchase_savings(baseline: Plan, candidate: Plan) -> Tuple[int, int, int]:
    """
    Returns (repeats, equivalent_baseline_cost, savings).

    repeats is how many times the baseline must be bought to cover the candidate's
    validity, always rounded up: covering 90 days with a 28-day plan takes 4 purchases.
    """
    repeats = -(-candidate.validity_days // baseline.validity_days)
    equivalent = repeats * baseline.price
    return repeats, equivalent, equivalent - candidate.price


def cost_per_day(plan: Plan) -> float:
    return round(plan.price / plan.validity_days, 2)


def value_reasoning(candidate: Plan, baseline: Plan, repeats: int, equivalent: int, savings: int) -> str:
    times = "time" if repeats == 1 else "times"
    return (
        f"Choosing this {candidate.validity_days}-day plan for {candidate.price} is cheaper than "
        f"buying the {baseline.validity_days}-day plan {repeats} {times} "
        f"(which would cost {equivalent}). You save {savings}."
    )


def _qualifies(
    candidate: Plan,
    baseline: Plan,
    requested_daily_data_gb: float,
    max_validity_multiple: Optional[float],
) -> bool:
    if candidate.key == baseline.key:
        return False
    if candidate.daily_data_gb < requested_daily_data_gb:
        return False
    if candidate.validity_days <= baseline.validity_days:
        return False
    if max_validity_multiple is not None and candidate.validity_days > max_validity_multiple * baseline.validity_days:
        return False
    return True


def analyze_value(
    baseline: Plan,
    candidates: Sequence[Plan],
    requested_daily_data_gb: float,
    max_value_plans: int = 2,
    max_validity_multiple: Optional[float] = None,
) -> List[ValuePlan]:
    """
    Keep candidates with at least the requested daily data and a longer validity than
    the baseline whose repeat-purchase savings are strictly positive.
    Best savings first; ties go to the cheaper candidate.
    """
    scored: List[ScoredPlan] = []
    for c in candidates:
        if not _qualifies(c, baseline, requested_daily_data_gb, max_validity_multiple):
            continue
        _, _, savings = repeat_purchase_savings(baseline, c)
        if savings > 0:
            scored.append(ScoredPlan(savings, c))

    scored.sort(key=lambda s: (-s.score, s.plan.price))

    base_cpd = cost_per_day(baseline)
    out: List[ValuePlan] = []
    for s in scored[: max(0, max_value_plans)]:
        repeats, equivalent, savings = repeat_purchase_savings(baseline, s.plan)
        out.append(
            ValuePlan(
                **s.plan.model_dump(),
                reasoning=value_reasoning(s.plan, baseline, repeats, equivalent, savings),
                savings=savings,
                repeats=repeats,
                equivalent_baseline_cost=equivalent,
                cost_per_day=cost_per_day(s.plan),
                baseline_cost_per_day=base_cpd,
            )
        )
    return out
