"""
In-process metrics for ShowReel.

  counters   pipeline runs, step outcomes, requests, vendor fallbacks
  gauges     start time, active pipeline runs
  latency    rolling window of step / vendor durations in ms
  errors     most recent failures, newest last

Nothing is persisted; a restart starts from zero.
"""

import time
import logging
import threading
from collections import defaultdict, deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)

LATENCY_WINDOW = 100
ERROR_WINDOW = 50
ERRORS_IN_SNAPSHOT = 10

_lock = threading.Lock()
_counts: dict[str, int] = defaultdict(int)
_levels: dict[str, float] = defaultdict(float)
_durations: dict[str, deque] = defaultdict(lambda: deque(maxlen=LATENCY_WINDOW))
_errors: deque = deque(maxlen=ERROR_WINDOW)


def inc_counter(name: str, amount: int = 1):
    with _lock:
        _counts[name] += amount


def set_gauge(name: str, value: float):
    with _lock:
        _levels[name] = value


def add_gauge(name: str, delta: float):
    with _lock:
        _levels[name] += delta


def record_latency(name: str, duration_ms: float):
    with _lock:
        _durations[name].append(duration_ms)


def record_error(source: str, message: str, project_id: str = ""):
    """Remember a failure for the /metrics debug view."""
    with _lock:
        _errors.append({
            "at": time.time(),
            "source": source,
            "project_id": project_id,
            "message": message[:300],
        })


@contextmanager
def step_timer(label: str, metric: str = ""):
    """Log how long the block took; with `metric`, keep it as a latency sample."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = round((time.perf_counter() - started) * 1000)
        logger.debug(f"{label} completed in {elapsed_ms}ms")
        if metric:
            record_latency(metric, elapsed_ms)


def _summarise(samples) -> dict:
    ordered = sorted(samples)
    count = len(ordered)
    return {
        "count": count,
        "avg": sum(ordered) / count,
        "p50": ordered[count // 2],
        # under 20 samples p95 is just the max
        "p95": ordered[int(count * 0.95)] if count >= 20 else ordered[-1],
    }


def _step_outcomes(counts: dict) -> dict:
    """Fold `steps.<name>.<outcome>` counters into {name: {outcome: n}}."""
    steps: dict[str, dict] = {}
    for key, value in counts.items():
        parts = key.split(".")
        if len(parts) == 3 and parts[0] == "steps":
            steps.setdefault(parts[1], {})[parts[2]] = value
    return steps


def get_snapshot() -> dict:
    with _lock:
        counts = dict(_counts)
        levels = dict(_levels)
        latency = {name: _summarise(s) for name, s in _durations.items() if s}
        errors = list(_errors)[-ERRORS_IN_SNAPSHOT:]

    now = time.time()
    return {
        "timestamp": now,
        "uptime_seconds": now - levels.get("start_time", now),
        "counters": counts,
        "gauges": levels,
        "steps": _step_outcomes(counts),
        "latency": latency,
        "recent_errors": errors,
    }


def reset():
    with _lock:
        _counts.clear()
        _levels.clear()
        _durations.clear()
        _errors.clear()
