# =============================================
# File: rechargeace/utils/prompting.py
# Purpose: Build JSON-structured messages asking the model to explain value plans
# =============================================
from __future__ import annotations
from typing import Dict, List, Sequence

from .sanitize import collapse_ws

SYS_PROMPT = (
    "You are RechargeAce's plan advisor. You explain, in plain English, why a longer mobile recharge plan "
    "is better value than repeatedly buying a shorter one. The numbers you are given are final: "
    "do NOT recompute, change, or add prices, savings, or plans. "
    "Output MUST be valid JSON: {\"valueForMoneyPlans\": [{\"planName\": string, \"reasoning\": string}]}. "
    "Write one or two short sentences per plan, mentioning benefits when they are relevant to the user."
)

USER_TEMPLATE = (
    "User needs {data} GB/day for {validity} days on {provider}.\n\n"
    "Baseline plan (bought repeatedly):\n"
    "{baseline}\n\n"
    "Better-value plans (numbers already computed):\n"
    "{candidates}\n\n"
    "Instructions:\n"
    "- Return ONLY the JSON object, one entry per plan listed above, using the exact planName.\n"
    "- No markdown. No extra text."
)


def _fmt_plan(p) -> str:
    line = (
        f"{collapse_ws(p.name)} | price {p.price} | {p.validity_days} days | "
        f"{p.daily_data_gb:g} GB/day"
    )
    if p.benefits:
        line += f" | benefits: {collapse_ws(p.benefits)[:160]}"
    return line


def _fmt_candidate(idx: int, vp) -> str:
    return (
        f"[{idx}] {_fmt_plan(vp)} | replaces {vp.repeats} baseline purchases "
        f"costing {vp.equivalent_baseline_cost} | saves {vp.savings}"
    )


def build_advisory_messages(preference, baseline, candidates: Sequence) -> List[Dict]:
    """
    Messages for the OpenAI Chat Completions API.
    The model must return {"valueForMoneyPlans": [{"planName", "reasoning"}]}.
    """
    user = USER_TEMPLATE.format(
        data=f"{preference.daily_data_gb:g}",
        validity=preference.validity_days,
        provider=collapse_ws(preference.provider),
        baseline=_fmt_plan(baseline),
        candidates="\n".join(_fmt_candidate(i, c) for i, c in enumerate(candidates, start=1)) or "(none)",
    )
    return [
        {"role": "system", "content": SYS_PROMPT},
        {"role": "user", "content": user},
    ]
