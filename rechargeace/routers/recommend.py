# rechargeace/routers/recommend.py
from __future__ import annotations

import time
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from rechargeace.services.advisory import get_advisor
from rechargeace.services.catalog import get_catalog
from rechargeace.services.models import Plan, Preference, ValuePlan
from rechargeace.services.recommender import recommend
from rechargeace.utils import rcache, slog
from rechargeace.utils.metrics import record_rate_limit_hit, record_request
from rechargeace.utils.policy import advisory_deadline_seconds, policy_from_env
from rechargeace.utils.ratelimit import RateLimitExceeded, check_rate_limit
from rechargeace.utils.timing import timer

router = APIRouter(tags=["recommend"])


# ---------- Response schema ----------
class RecommendResponse(BaseModel):
    """
    Outgoing response (wire names).
    - exactMatchPlans: plans matching data AND validity, cheapest first.
    - similarPlans: same data, other validity, closest validity first.
    - valueForMoneyPlans: longer plans cheaper than re-buying the cheapest exact match.
    - reasoningSource: "local" or "advisory" (advisory text merged into reasoning).
    """
    model_config = ConfigDict(populate_by_name=True)

    exactMatchPlans: List[Plan] = Field(default_factory=list)
    similarPlans: List[Plan] = Field(default_factory=list)
    valueForMoneyPlans: List[ValuePlan] = Field(default_factory=list)
    reasoningSource: str = "local"


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "anon"


# ---------- Endpoint ----------
@router.post("/recommend", response_model=RecommendResponse, response_model_by_alias=True, response_model_exclude_none=True)
def post_recommend(req: Preference, request: Request) -> Dict[str, Any]:
    """
    Recharge plan recommendation:
      catalog -> exact/similar matching -> value analysis vs cheapest exact match
      -> optional advisory wording.
    Malformed preferences are rejected with 422 before any computation.
    """
    ctx = {
        "provider": req.provider,
        "phash": slog.phash(req.provider, req.daily_data_gb, req.validity_days),
        "cache_hit": False,
    }
    request.state.log_context = ctx

    try:
        check_rate_limit(_client_key(request))
    except RateLimitExceeded:
        record_rate_limit_hit()
        ctx["rate_limited"] = True
        raise HTTPException(status_code=429, detail="Too Many Requests")

    with timer() as elapsed:
        try:
            catalog = get_catalog()
            policy = policy_from_env()
            advisor = get_advisor()
            policy_tag = f"{hash(policy):x}:{'adv' if advisor is not None else 'local'}"
            cache_key = rcache.make_key(
                req.provider, req.daily_data_gb, req.validity_days, catalog.version, policy_tag
            )
            cached = rcache.get(cache_key)
            if cached is not None:
                record_request(latency_ms=elapsed(), reasoning_source="cache")
                ctx.update({"cache_hit": True, "reasoning_source": "cache"})
                return cached

            deadline = None
            secs = advisory_deadline_seconds()
            if secs is not None:
                deadline = time.monotonic() + secs

            rec = recommend(req, catalog=catalog, advisor=advisor, policy=policy, deadline=deadline)
            body = rec.to_wire()
        except HTTPException:
            raise
        except Exception as e:
            # Keep details for debugging; middleware will log request context.
            raise HTTPException(status_code=500, detail=str(e))

        # advisory fallbacks are not cached so the next identical request retries enrichment
        fell_back = advisor is not None and rec.value_for_money_plans and rec.reasoning_source == "local"
        if not fell_back:
            rcache.set(cache_key, body)
        record_request(latency_ms=elapsed(), reasoning_source=rec.reasoning_source)
        ctx.update({
            "exact": len(rec.exact_matches),
            "similar": len(rec.similar_plans),
            "value": len(rec.value_for_money_plans),
            "reasoning_source": rec.reasoning_source,
        })
        return body
