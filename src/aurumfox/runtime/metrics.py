# src/aurumfox/runtime/metrics.py
from __future__ import annotations

"""Process-local counters and gauges.

Engines bump counters unconditionally; AFOX_METRICS_ENABLED only controls
whether /v1/metrics exposes them.
"""

import os
import re
import threading
import time
from typing import Dict

_lock = threading.Lock()
_counters: Dict[str, int] = {}
_gauges: Dict[str, int] = {}
_started_ms = int(time.time() * 1000)

_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")


def metrics_enabled() -> bool:
    return (os.environ.get("AFOX_METRICS_ENABLED") or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _name(raw: str) -> str:
    return _NAME_RE.sub("_", str(raw or "").strip())


def inc_counter(name: str, value: int = 1) -> None:
    n = _name(name)
    if n:
        with _lock:
            _counters[n] = _counters.get(n, 0) + int(value)


def set_gauge(name: str, value: int) -> None:
    n = _name(name)
    if n:
        with _lock:
            _gauges[n] = int(value)


def counter(name: str) -> int:
    with _lock:
        return _counters.get(_name(name), 0)


def snapshot() -> dict:
    now = int(time.time() * 1000)
    with _lock:
        return {
            "ts_ms": now,
            "uptime_ms": now - _started_ms,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
        }


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def format_prometheus(prefix: str = "afox_") -> str:
    """Prometheus text exposition (version 0.0.4) of the current snapshot."""
    snap = snapshot()
    out = [f"# TYPE {prefix}uptime_ms gauge", f"{prefix}uptime_ms {snap['uptime_ms']}"]
    for kind, values in (("counter", snap["counters"]), ("gauge", snap["gauges"])):
        for name in sorted(values):
            out.append(f"# TYPE {prefix}{name} {kind}")
            out.append(f"{prefix}{name} {values[name]}")
    return "\n".join(out) + "\n"
