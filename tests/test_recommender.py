# =============================================
# File: tests/test_recommender.py
# Purpose: Orchestration: baseline selection, invariants, advisory retry/backoff and fallback
# =============================================
import sys, os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import pytest

from rechargeace.services import recommender as rmod
from rechargeace.services.advisory import AdvisoryError, AdvisoryUnavailable
from rechargeace.services.catalog import PlanCatalog
from rechargeace.services.models import Plan, Preference
from rechargeace.utils.policy import EnginePolicy

POLICY = EnginePolicy()


def _plan(name, price, validity, data=1.5, provider="Airtel"):
    return Plan(provider=provider, name=name, price=price, validity_days=validity,
                daily_data_gb=data, total_data_gb=data * validity)


CATALOG = PlanCatalog([
    _plan("Base 28", 299, 28),
    _plan("Base 28 dear", 349, 28),
    _plan("Quarterly 84", 859, 84),
    _plan("Value 90", 929, 90),
    _plan("Monthly 2GB", 599, 30, data=2.0),
    _plan("Jio 28", 299, 28, provider="Jio"),
])


def _pref(data=1.5, validity=28, provider="Airtel"):
    return Preference(daily_data_gb=data, validity_days=validity, provider=provider)


class _Sleeps:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


class _FlakyAdvisor:
    """Transient failure on the first `fail_times` calls, then a fixed answer."""

    def __init__(self, fail_times=0, answer=None, error=AdvisoryUnavailable):
        self.fail_times = fail_times
        self.answer = answer
        self.error = error
        self.calls = 0
        self.timeouts = []

    def enrich(self, preference, baseline, candidates, timeout=None):
        self.calls += 1
        self.timeouts.append(timeout)
        if self.calls <= self.fail_times:
            raise self.error("upstream busy")
        return self.answer


ADVICE = {"valueForMoneyPlans": [
    {"planName": "Value 90", "reasoning": "Three months of data in one recharge."},
    {"planName": "Invented Plan", "reasoning": "Not in the catalog."},
]}


def test_baseline_is_cheapest_exact_match():
    rec = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    assert [p.name for p in rec.exact_matches] == ["Base 28", "Base 28 dear"]
    # savings are measured against the 299 plan
    by_name = {v.name: v for v in rec.value_for_money_plans}
    assert by_name["Value 90"].savings == 267
    assert by_name["Quarterly 84"].savings == 38
    assert [v.name for v in rec.value_for_money_plans] == ["Value 90", "Quarterly 84"]


def test_value_plans_never_repeat_exact_matches():
    rec = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    exact_keys = {p.key for p in rec.exact_matches}
    assert all(v.key not in exact_keys for v in rec.value_for_money_plans)
    assert all(p.validity_days != 28 for p in rec.similar_plans)


def test_no_exact_match_skips_value_analysis(monkeypatch):
    def _boom(*a, **k):
        raise AssertionError("value analysis must not run without a baseline")
    monkeypatch.setattr(rmod, "analyze_value", _boom)

    rec = rmod.recommend(_pref(validity=45), catalog=CATALOG, policy=POLICY)
    assert rec.exact_matches == []
    assert rec.value_for_money_plans == []
    assert [p.name for p in rec.similar_plans] == ["Base 28", "Base 28 dear", "Quarterly 84", "Value 90"]


def test_unknown_provider_gives_empty_lists():
    rec = rmod.recommend(_pref(provider="Vodafone"), catalog=CATALOG, policy=POLICY)
    assert rec.exact_matches == [] and rec.similar_plans == [] and rec.value_for_money_plans == []
    assert rec.reasoning_source == "local"


def test_idempotent_without_advisor():
    a = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    b = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    assert a == b
    assert a.to_wire() == b.to_wire()


def test_advisory_succeeds_after_two_transient_failures():
    local = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    sleeps = _Sleeps()
    advisor = _FlakyAdvisor(fail_times=2, answer=ADVICE)

    rec = rmod.recommend(_pref(), catalog=CATALOG, advisor=advisor, policy=POLICY, sleep=sleeps)

    assert advisor.calls == 3
    assert sleeps.calls == [1.0, 1.0]
    assert rec.reasoning_source == "advisory"
    # selection and figures are unchanged; only wording is appended
    assert [v.name for v in rec.value_for_money_plans] == [v.name for v in local.value_for_money_plans]
    assert [v.savings for v in rec.value_for_money_plans] == [v.savings for v in local.value_for_money_plans]
    enriched = {v.name: v.reasoning for v in rec.value_for_money_plans}
    base = {v.name: v.reasoning for v in local.value_for_money_plans}
    assert enriched["Value 90"] == base["Value 90"] + " Three months of data in one recharge."
    assert enriched["Quarterly 84"] == base["Quarterly 84"]
    assert all(v.name != "Invented Plan" for v in rec.value_for_money_plans)


def test_permanent_failure_falls_back_without_retry():
    local = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    sleeps = _Sleeps()
    advisor = _FlakyAdvisor(fail_times=99, error=AdvisoryError)

    rec = rmod.recommend(_pref(), catalog=CATALOG, advisor=advisor, policy=POLICY, sleep=sleeps)

    assert advisor.calls == 1
    assert sleeps.calls == []
    assert rec == local
    assert rec.reasoning_source == "local"
    assert "You save" in rec.value_for_money_plans[0].reasoning


def test_unexpected_exception_is_contained():
    class _Broken:
        def enrich(self, preference, baseline, candidates, timeout=None):
            raise KeyError("choices")

    local = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    rec = rmod.recommend(_pref(), catalog=CATALOG, advisor=_Broken(), policy=POLICY, sleep=_Sleeps())
    assert rec == local


def test_transient_failures_exhaust_attempts():
    sleeps = _Sleeps()
    advisor = _FlakyAdvisor(fail_times=99)
    rec = rmod.recommend(_pref(), catalog=CATALOG, advisor=advisor, policy=POLICY, sleep=sleeps)
    assert advisor.calls == 3
    assert sleeps.calls == [1.0, 1.0]
    assert rec.reasoning_source == "local"
    assert advisor.timeouts == [None, None, None]


def test_deadline_stops_retry_loop():
    now = {"t": 100.0}

    def clock():
        return now["t"]

    def sleep(seconds):
        now["t"] += seconds

    advisor = _FlakyAdvisor(fail_times=99)
    rec = rmod.recommend(
        _pref(), catalog=CATALOG, advisor=advisor, policy=POLICY,
        sleep=sleep, clock=clock, deadline=101.5,
    )
    # attempt at t=100, sleep to 101, attempt at t=101, next backoff would pass 101.5
    assert advisor.calls == 2
    assert advisor.timeouts == [1.5, 0.5]
    assert now["t"] == 101.0
    assert rec.reasoning_source == "local"


def test_expired_deadline_skips_advisor():
    advisor = _FlakyAdvisor(answer=ADVICE)
    rec = rmod.recommend(
        _pref(), catalog=CATALOG, advisor=advisor, policy=POLICY,
        clock=lambda: 10.0, deadline=5.0,
    )
    assert advisor.calls == 0
    assert rec.reasoning_source == "local"


def test_advisor_not_called_without_value_plans():
    advisor = _FlakyAdvisor(answer=ADVICE)
    rec = rmod.recommend(_pref(validity=45), catalog=CATALOG, advisor=advisor, policy=POLICY)
    assert advisor.calls == 0
    assert rec.value_for_money_plans == []


def test_policy_caps_are_injected():
    policy = EnginePolicy(max_exact_matches=1, max_similar_plans=1, max_value_plans=1)
    rec = rmod.recommend(_pref(), catalog=CATALOG, policy=policy)
    assert [p.name for p in rec.exact_matches] == ["Base 28"]
    assert len(rec.similar_plans) == 1
    assert [v.name for v in rec.value_for_money_plans] == ["Value 90"]


def test_packaged_catalog_airtel_profile():
    from rechargeace.services.catalog import get_catalog
    rec = rmod.recommend(_pref(), catalog=get_catalog(), policy=POLICY)
    assert [p.name for p in rec.exact_matches] == ["HelloTunes 28D"]
    assert [p.name for p in rec.similar_plans] == [
        "Data Pack 56D Lite", "Data Pack 60D", "HelloTunes 77D", "RewardsMini 84D", "Value Pack 90D",
    ]
    assert [(v.name, v.savings) for v in rec.value_for_money_plans] == [
        ("Annual 2GB/Day", 1287), ("Value Pack 90D", 467),
    ]


def test_malformed_preference_rejected_before_computation():
    from pydantic import ValidationError
    with pytest.raises(ValidationError):
        Preference(daily_data_gb=0, validity_days=28, provider="Airtel")
    with pytest.raises(ValidationError):
        Preference(daily_data_gb=1.5, validity_days=-1, provider="Airtel")
    with pytest.raises(ValidationError):
        Preference(daily_data_gb=1.5, validity_days=28, provider="   ")


def test_slow_advisor_is_cut_off_at_deadline():
    import time

    class _Slow:
        def __init__(self):
            self.timeouts = []

        def enrich(self, preference, baseline, candidates, timeout=None):
            self.timeouts.append(timeout)
            time.sleep(2.0)
            return ADVICE

    local = rmod.recommend(_pref(), catalog=CATALOG, policy=POLICY)
    advisor = _Slow()
    start = time.monotonic()
    rec = rmod.recommend(
        _pref(), catalog=CATALOG, advisor=advisor, policy=POLICY,
        sleep=_Sleeps(), deadline=start + 0.3,
    )
    assert time.monotonic() - start < 1.0
    assert len(advisor.timeouts) == 1 and 0 < advisor.timeouts[0] <= 0.3
    assert rec == local
    assert rec.reasoning_source == "local"
