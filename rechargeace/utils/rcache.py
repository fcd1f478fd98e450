# =============================================
# File: rechargeace/utils/rcache.py
# Purpose: In-process TTL + LRU cache for /recommend responses
# =============================================
from __future__ import annotations
import os
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Tuple

# Store: key -> (expires_at, value)
_store: "OrderedDict[str, Tuple[float, Dict[str, Any]]]" = OrderedDict()
_lock = threading.Lock()


def _ttl() -> int:
    return int(os.getenv("CACHE_TTL_SECONDS", "600"))            # 10 minutes


def _max_entries() -> int:
    return int(os.getenv("CACHE_MAX_ENTRIES", "1000"))


def _now() -> float:
    return time.time()


def make_key(provider: str, daily_data_gb: float, validity_days: int, catalog_version: str, policy_tag: str = "") -> str:
    # location is informational only and never changes the result
    return f"{(provider or '').strip().lower()}:{float(daily_data_gb):g}:{int(validity_days)}:{catalog_version}:{policy_tag}"


def get(key: str) -> Dict[str, Any] | None:
    now = _now()
    with _lock:
        # prune expired
        dead = [k for k, (exp, _) in _store.items() if exp < now]
        for k in dead:
            _store.pop(k, None)

        item = _store.get(key)
        if not item:
            return None
        # LRU touch: move to end
        _store.move_to_end(key, last=True)
        return item[1]


def set(key: str, value: Dict[str, Any], ttl: int | None = None) -> None:
    exp = _now() + (ttl if ttl is not None else _ttl())
    with _lock:
        _store[key] = (exp, value)
        _store.move_to_end(key, last=True)
        # enforce size
        while len(_store) > _max_entries():
            _store.popitem(last=False)


def clear() -> None:
    with _lock:
        _store.clear()
