# rechargeace/utils/timing.py
import time
from contextlib import contextmanager


@contextmanager
def timer():
    """Yields a callable returning whole milliseconds elapsed since entry (latency_ms fields)."""
    t0 = time.perf_counter()
    yield lambda: int((time.perf_counter() - t0) * 1000)
