from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

from fastapi import APIRouter, Request

router = APIRouter()

log = logging.getLogger("aurumfox.health")


def _env_bool(name: str, default: bool) -> bool:
    v = os.environ.get(name)
    if v is None:
        return bool(default)
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _sweep_loop_status(app_state: Any) -> dict[str, object]:
    loop = getattr(app_state, "sweep_loop", None)
    if loop is None:
        return {"running": False, "unhealthy": None, "last_error": None, "consecutive_failures": None}
    st = loop.status()
    return {
        "running": bool(st.get("running")),
        "unhealthy": bool(st.get("unhealthy")),
        "last_error": st.get("last_error") or None,
        "consecutive_failures": int(st.get("consecutive_failures") or 0),
    }


def _store_ok(ex: Any) -> Optional[bool]:
    if ex is None:
        return None
    try:
        return bool(ex.ping())
    except Exception:
        # Readiness must never crash; the store logs its own failure.
        log.exception("store ping raised")
        return False


def _store_kind(ex: Any) -> Optional[str]:
    store = getattr(ex, "store", None)
    return type(store).__name__ if store is not None else None


@router.get("/health")
def v1_health(request: Request) -> dict[str, object]:
    ex = getattr(request.app.state, "executor", None)
    cfg = getattr(ex, "cfg", None)
    return {
        "ok": True,
        "service": "aurumfox-core",
        "version": "v1",
        "ts_ms": _now_ms(),
        "mode": getattr(cfg, "mode", None),
        "store": _store_kind(ex),
        "staking_apr": getattr(cfg, "staking_apr", None),
        "voting_window_ms": getattr(cfg, "voting_window_ms", None),
        "sweep_loop": _sweep_loop_status(request.app.state),
    }


@router.get("/readyz")
def v1_readyz(request: Request) -> dict[str, object]:
    """Readiness: executor attached and store reachable.

    AFOX_READYZ_REQUIRE_SWEEP_LOOP=1 additionally requires a healthy,
    running sweep loop.
    """
    ex = getattr(request.app.state, "executor", None)
    store_ok = _store_ok(ex)
    ready = store_ok is True

    require_loop = _env_bool("AFOX_READYZ_REQUIRE_SWEEP_LOOP", False)
    sl = _sweep_loop_status(request.app.state)
    if require_loop:
        ready = ready and (sl.get("running") is True) and (sl.get("unhealthy") is not True)

    return {
        "ok": bool(ready),
        "service": "aurumfox-core",
        "version": "v1",
        "ts_ms": _now_ms(),
        "store": _store_kind(ex),
        "store_ok": store_ok,
        "require_sweep_loop": bool(require_loop),
        "sweep_loop": sl,
    }
