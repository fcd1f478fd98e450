# rechargeace/routers/plans.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query

from rechargeace.services.catalog import get_catalog

router = APIRouter(tags=["plans"])


@router.get("/plans")
def get_plans(provider: Optional[str] = Query(None, max_length=64)) -> Dict[str, Any]:
    """
    Catalog listing.
    - with ?provider=: that provider's plans (empty list when unknown)
    - without: the provider names available
    """
    catalog = get_catalog()
    if provider is None or not provider.strip():
        return {"providers": catalog.providers(), "count": len(catalog)}
    plans = catalog.plans_for_provider(provider)
    return {
        "provider": provider.strip(),
        "plans": [p.model_dump(by_alias=True, exclude_none=True) for p in plans],
    }
