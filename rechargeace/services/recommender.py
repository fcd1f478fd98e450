# =============================================
# File: rechargeace/services/recommender.py
# Purpose: Compose catalog lookup, matching and value analysis into one recommendation,
#          with optional advisory enrichment (bounded retry + deterministic fallback)
# =============================================
from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from rechargeace.services.advisory import Advisor, AdvisoryUnavailable
from rechargeace.services.catalog import PlanCatalog, get_catalog
from rechargeace.services.classifier import classify
from rechargeace.services.models import Plan, Preference, Recommendation, ValuePlan
from rechargeace.services.value_analyzer import analyze_value
from rechargeace.utils.metrics import record_advisory_attempt, record_advisory_fallback
from rechargeace.utils.policy import EnginePolicy, policy_from_env
from rechargeace.utils.sanitize import sanitize_advisory_text


def _call_within(fn: Callable[[], Any], timeout: Optional[float]) -> Any:
    """Run fn, giving up after `timeout` seconds. The worker is abandoned, not joined."""
    if timeout is None:
        return fn()
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="advisory")
    try:
        return pool.submit(fn).result(timeout=timeout)
    finally:
        pool.shutdown(wait=False)


def _enrich_with_retry(
    advisor: Advisor,
    preference: Preference,
    baseline: Plan,
    value_plans: Sequence[ValuePlan],
    policy: EnginePolicy,
    sleep: Callable[[float], None],
    clock: Callable[[], float],
    deadline: Optional[float],
) -> Optional[Dict[str, Any]]:
    """
    Call the advisor up to policy.advisory_max_attempts times, sleeping a fixed
    backoff between attempts. Only AdvisoryUnavailable is retried.
    With a deadline, each attempt gets the remaining budget and is cut off when it runs out.
    Returns None when no usable advisory output was obtained.
    """
    attempts = max(1, policy.advisory_max_attempts)
    for attempt in range(1, attempts + 1):
        remaining = None if deadline is None else deadline - clock()
        if remaining is not None and remaining <= 0:
            logger.warning(f"[advisory] deadline reached before attempt {attempt}; using local reasoning")
            return None
        record_advisory_attempt()
        try:
            return _call_within(
                lambda: advisor.enrich(preference, baseline, value_plans, timeout=remaining),
                remaining,
            )
        except FutureTimeout:
            logger.warning(f"[advisory] attempt {attempt} still running at the deadline; using local reasoning")
            return None
        except AdvisoryUnavailable as e:
            logger.warning(f"[advisory] attempt {attempt}/{attempts} unavailable: {e}")
            if attempt == attempts:
                break
            if deadline is not None and clock() + policy.advisory_backoff_seconds >= deadline:
                logger.warning("[advisory] backoff would pass the deadline; using local reasoning")
                return None
            sleep(policy.advisory_backoff_seconds)
        except Exception as e:
            logger.warning(f"[advisory] failed, not retrying: {e!r}")
            return None
    logger.warning(f"[advisory] gave up after {attempts} attempts; using local reasoning")
    return None


def _merge_reasoning(
    value_plans: List[ValuePlan],
    enriched: Optional[Dict[str, Any]],
) -> Tuple[List[ValuePlan], bool]:
    """
    Append advisory text to the locally computed reasoning.
    Plans the advisor invents are ignored; selection, order and figures stay local.
    """
    if not isinstance(enriched, dict):
        return value_plans, False

    extra_by_name: Dict[str, str] = {}
    for entry in enriched.get("valueForMoneyPlans") or []:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("planName") or entry.get("name") or "").strip()
        text = sanitize_advisory_text(entry.get("reasoning") or "")
        if name and text:
            extra_by_name.setdefault(name, text)

    merged: List[ValuePlan] = []
    changed = False
    for vp in value_plans:
        extra = extra_by_name.get(vp.name)
        if extra:
            merged.append(vp.model_copy(update={"reasoning": f"{vp.reasoning} {extra}"}))
            changed = True
        else:
            merged.append(vp)
    return merged, changed


def recommend(
    preference: Preference,
    catalog: Optional[PlanCatalog] = None,
    advisor: Optional[Advisor] = None,
    policy: Optional[EnginePolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    deadline: Optional[float] = None,
) -> Recommendation:
    """
    Steps:
      1) provider plans from the catalog
      2) exact + similar matches
      3) baseline = cheapest exact match (if any)
      4) value analysis against the baseline (skipped without one)
      5) optional advisory enrichment of the reasoning text
    Empty results are returned as empty lists, never raised.
    `deadline` is an absolute time on `clock`; it only bounds step 5.
    """
    catalog = catalog if catalog is not None else get_catalog()
    policy = policy or policy_from_env()

    plans = catalog.plans_for_provider(preference.provider)
    exact, similar = classify(
        preference,
        plans,
        max_exact_matches=policy.max_exact_matches,
        max_similar_plans=policy.max_similar_plans,
    )

    baseline = exact[0] if exact else None
    value_plans: List[ValuePlan] = []
    if baseline is not None:
        exact_keys = {p.key for p in exact}
        pool = [p for p in plans if p.key not in exact_keys]
        value_plans = analyze_value(
            baseline,
            pool,
            preference.daily_data_gb,
            max_value_plans=policy.max_value_plans,
            max_validity_multiple=policy.max_validity_multiple,
        )

    source = "local"
    if advisor is not None and baseline is not None and value_plans:
        enriched = _enrich_with_retry(
            advisor, preference, baseline, value_plans, policy, sleep, clock, deadline
        )
        value_plans, changed = _merge_reasoning(value_plans, enriched)
        if changed:
            source = "advisory"
        else:
            record_advisory_fallback()

    logger.info(
        f"[recommend] provider={preference.provider} data={preference.daily_data_gb:g} "
        f"validity={preference.validity_days} plans={len(plans)} exact={len(exact)} "
        f"similar={len(similar)} value={len(value_plans)} source={source}"
    )
    return Recommendation(
        exact_matches=exact,
        similar_plans=similar,
        value_for_money_plans=value_plans,
        reasoning_source=source,
    )
