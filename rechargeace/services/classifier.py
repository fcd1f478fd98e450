# =============================================
# File: rechargeace/services/classifier.py
# Purpose: Exact / similar plan matching against a user preference
# =============================================
from __future__ import annotations

from typing import List, Sequence, Tuple

from rechargeace.services.models import Plan, Preference, ScoredPlan


def exact_matches(preference: Preference, plans: Sequence[Plan], limit: int = 2) -> List[Plan]:
    """Same daily data AND same validity, cheapest first (stable on price ties)."""
    hits = [
        p for p in plans
        if p.daily_data_gb == preference.daily_data_gb and p.validity_days == preference.validity_days
    ]
    hits.sort(key=lambda p: p.price)
    return hits[: max(0, limit)]


def similar_plans(preference: Preference, plans: Sequence[Plan], limit: int = 5) -> List[Plan]:
    """
    Same daily data, different validity. Ranked by validity distance, then price.
    """
    scored = [
        ScoredPlan(abs(p.validity_days - preference.validity_days), p)
        for p in plans
        if p.daily_data_gb == preference.daily_data_gb and p.validity_days != preference.validity_days
    ]
    scored.sort(key=lambda s: (s.score, s.plan.price))
    return [s.plan for s in scored[: max(0, limit)]]


def classify(
    preference: Preference,
    plans: Sequence[Plan],
    max_exact_matches: int = 2,
    max_similar_plans: int = 5,
) -> Tuple[List[Plan], List[Plan]]:
    return (
        exact_matches(preference, plans, limit=max_exact_matches),
        similar_plans(preference, plans, limit=max_similar_plans),
    )
