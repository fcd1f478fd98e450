# =============================================
# File: rechargeace/utils/metrics.py
# Purpose: In-process counters, reasoning-source tallies and latency histograms for /metrics
# =============================================
from __future__ import annotations
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List

COUNTERS = (
    "requests_total",
    "rate_limit_hits_total",
    "advisory_attempts_total",
    "advisory_fallbacks_total",
)
LATENCY_BUCKETS_MS: List[int] = [50, 100, 200, 500, 1000, 2000, 5000, 10000]
MAX_ENDPOINT_SAMPLES = 1000


def _p95(values: List[float]) -> float:
    if not values:
        return 0.0
    xs = sorted(values)
    return xs[int(0.95 * (len(xs) - 1))]


@dataclass
class _Registry:
    counters: Counter = field(default_factory=Counter)
    sources: Counter = field(default_factory=Counter)           # "local" | "advisory" | "cache"
    buckets: List[int] = field(default_factory=lambda: [0] * (len(LATENCY_BUCKETS_MS) + 1))  # last: +Inf
    endpoint_samples: Dict[str, List[float]] = field(default_factory=dict)
    endpoint_counts: Counter = field(default_factory=Counter)

    def observe(self, ms: int) -> None:
        for i, thr in enumerate(LATENCY_BUCKETS_MS):
            if ms <= thr:
                self.buckets[i] += 1
                return
        self.buckets[-1] += 1


_lock = threading.Lock()
_reg = _Registry()


def _inc(name: str) -> None:
    with _lock:
        _reg.counters[name] += 1


def record_request(latency_ms: int, reasoning_source: str | None) -> None:
    with _lock:
        _reg.counters["requests_total"] += 1
        if reasoning_source:
            _reg.sources[reasoning_source] += 1
        _reg.observe(int(latency_ms))


def record_rate_limit_hit() -> None:
    _inc("rate_limit_hits_total")


def record_advisory_attempt() -> None:
    _inc("advisory_attempts_total")


def record_advisory_fallback() -> None:
    _inc("advisory_fallbacks_total")


def record_endpoint(method: str, path: str, latency_ms: float) -> None:
    key = f"{method.upper()} {path}"
    with _lock:
        _reg.endpoint_counts[key] += 1
        buf = _reg.endpoint_samples.setdefault(key, [])
        buf.append(float(latency_ms))
        if len(buf) > MAX_ENDPOINT_SAMPLES:
            del buf[: len(buf) - MAX_ENDPOINT_SAMPLES]


def snapshot() -> Dict[str, Any]:
    with _lock:
        endpoints = {
            key: {
                "count": float(_reg.endpoint_counts[key]),
                "avg_latency_ms": sum(buf) / len(buf) if buf else 0.0,
                "p95_latency_ms": _p95(buf),
            }
            for key, buf in _reg.endpoint_samples.items()
        }
        return {
            "counters": {name: _reg.counters[name] for name in COUNTERS},
            "reasoning_sources": dict(_reg.sources),
            "latency_ms": {
                "buckets": list(LATENCY_BUCKETS_MS) + ["+Inf"],
                "counts": list(_reg.buckets),
            },
            "performance": {"endpoints": endpoints, "generated_at": time.time()},
        }


def reset() -> None:
    global _reg
    with _lock:
        _reg = _Registry()
