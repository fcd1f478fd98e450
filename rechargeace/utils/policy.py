# =============================================
# File: rechargeace/utils/policy.py
# Purpose: Tunable ranking/advisory policy read from env at call time
# =============================================
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EnginePolicy:
    """Caps and advisory retry settings for one recommend() call."""
    max_exact_matches: int = 2
    max_similar_plans: int = 5
    max_value_plans: int = 2
    max_validity_multiple: Optional[float] = None   # None: no upper bound on candidate validity
    advisory_max_attempts: int = 3
    advisory_backoff_seconds: float = 1.0


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(os.getenv(name, str(default))))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        val = float(raw)
    except ValueError:
        return default
    return val if val > 0 else default


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def policy_from_env() -> EnginePolicy:
    # Read at call time so tests/env overrides take effect
    return EnginePolicy(
        max_exact_matches=_env_int("REC_MAX_EXACT_MATCHES", 2),
        max_similar_plans=_env_int("REC_MAX_SIMILAR_PLANS", 5),
        max_value_plans=_env_int("REC_MAX_VALUE_PLANS", 2),
        max_validity_multiple=_env_float("REC_MAX_VALIDITY_MULTIPLE", None),
        advisory_max_attempts=_env_int("ADVISORY_MAX_ATTEMPTS", 3, minimum=1),
        advisory_backoff_seconds=_env_float("ADVISORY_BACKOFF_SECONDS", 1.0) or 1.0,
    )


def advisory_deadline_seconds() -> Optional[float]:
    return _env_float("ADVISORY_DEADLINE_SECONDS", None)
