# =============================================
# File: rechargeace/services/models.py
# Purpose: Plan / Preference / Recommendation records shared by the engine, API and CLI
# =============================================
from __future__ import annotations

from typing import List, Literal, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Plan(BaseModel):
    """
    A provider's recharge offer. Immutable once loaded.
    Wire names (aliases) follow the catalog/API contract: planName, validity, dailyData, ...
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, alias="planName")
    price: int = Field(..., ge=0)
    validity_days: int = Field(..., gt=0, alias="validity")
    daily_data_gb: float = Field(..., ge=0, alias="dailyData")
    total_data_gb: float = Field(0.0, ge=0, alias="totalData")
    benefits: Optional[str] = Field(None, alias="otherBenefits")
    link: Optional[str] = Field(None, alias="rechargeLink")

    @property
    def key(self) -> Tuple[str, str]:
        """Identity: (lower-cased provider, plan name)."""
        return (self.provider.strip().lower(), self.name)


class Preference(BaseModel):
    """
    The user's request. Validation happens here, before any computation:
    non-positive data/validity and blank providers are rejected.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    daily_data_gb: float = Field(..., gt=0, alias="dailyDataUsageGB")
    validity_days: int = Field(..., gt=0, alias="validityDays")
    provider: str = Field(..., min_length=1, max_length=64, alias="telecomProvider")
    location: Optional[str] = Field(None, max_length=128)

    @field_validator("provider")
    @classmethod
    def _trim_provider(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("telecomProvider must not be empty")
        return v


class ScoredPlan(NamedTuple):
    score: float
    plan: Plan


class ValuePlan(Plan):
    """A longer plan proven cheaper than re-buying the baseline, with its audit trail."""

    reasoning: str
    savings: int
    repeats: int = Field(..., ge=1)
    equivalent_baseline_cost: int = Field(..., alias="equivalentBaselineCost")
    cost_per_day: float = Field(..., alias="costPerDay")
    baseline_cost_per_day: float = Field(..., alias="baselineCostPerDay")


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    exact_matches: List[Plan] = Field(default_factory=list, alias="exactMatchPlans")
    similar_plans: List[Plan] = Field(default_factory=list, alias="similarPlans")
    value_for_money_plans: List[ValuePlan] = Field(default_factory=list, alias="valueForMoneyPlans")
    reasoning_source: Literal["local", "advisory"] = Field("local", alias="reasoningSource")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
