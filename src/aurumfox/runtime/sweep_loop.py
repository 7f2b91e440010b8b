# src/aurumfox/runtime/sweep_loop.py
from __future__ import annotations

import fcntl
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, TextIO

from aurumfox.runtime.event_log import log_event
from aurumfox.runtime.metrics import inc_counter, set_gauge

log = logging.getLogger("aurumfox.sweep_loop")

MIN_INTERVAL_MS = 250


@dataclass(frozen=True, slots=True)
class SweepLoopConfig:
    interval_ms: int
    enabled: bool
    lock_path: str

    # Consecutive failed passes before the loop gives up and reports unhealthy.
    fail_fast_after: int
    error_backoff_min_ms: int
    error_backoff_max_ms: int


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, *, floor: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        v = int(raw) if raw else default
    except ValueError:
        log.warning("ignoring non-integer %s=%r", name, raw)
        v = default
    return max(floor, v)


def sweep_loop_config_from_env(*, interval_ms: Optional[int] = None) -> SweepLoopConfig:
    """Sweep loop settings from AFOX_DAO_SWEEP_* variables.

    `interval_ms` (usually CoreConfig.sweep_interval_ms) wins over
    AFOX_SWEEP_INTERVAL_MS. Every knob is clamped to a sane floor.
    """
    if interval_ms is None:
        interval = _env_int("AFOX_SWEEP_INTERVAL_MS", 60_000, floor=MIN_INTERVAL_MS)
    else:
        interval = max(MIN_INTERVAL_MS, int(interval_ms))

    backoff_min = _env_int("AFOX_DAO_SWEEP_ERROR_BACKOFF_MIN_MS", 250, floor=50)
    return SweepLoopConfig(
        interval_ms=interval,
        enabled=_env_flag("AFOX_DAO_SWEEP_ENABLED", True),
        lock_path=os.environ.get("AFOX_DAO_SWEEP_LOCK_PATH") or "./data/dao_sweep.lock",
        fail_fast_after=_env_int("AFOX_DAO_SWEEP_FAIL_FAST_AFTER", 10, floor=3),
        error_backoff_min_ms=backoff_min,
        error_backoff_max_ms=_env_int("AFOX_DAO_SWEEP_ERROR_BACKOFF_MAX_MS", 10_000, floor=backoff_min),
    )


class _LeaderLock:
    """Non-blocking flock on a file: one sweeper per host, however many workers."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._fh: Optional[TextIO] = None

    def try_acquire(self) -> bool:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fh = open(self.path, "a+", encoding="utf-8")
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            fh.close()
            return False
        fh.seek(0)
        fh.truncate()
        fh.write(f"{os.getpid()}\n")
        fh.flush()
        self._fh = fh
        return True

    def release(self) -> None:
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()


class ProposalSweepLoop:
    """Daemon thread that periodically completes expired DAO proposals.

    Votes already close expired proposals on their own; the loop only keeps
    the stored status current for readers. A failing pass is retried with
    exponential backoff, and after `fail_fast_after` failures in a row the
    loop marks itself unhealthy and exits so /v1/readyz can report it.
    """

    def __init__(self, *, executor: Any, cfg: Optional[SweepLoopConfig] = None) -> None:
        self._executor = executor
        self._cfg = cfg or sweep_loop_config_from_env()
        self._leader = _LeaderLock(self._cfg.lock_path)
        self._halt = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._failures = 0
        self._last_error = ""
        self._unhealthy = False
        self._last_completed = 0
        self._last_run_ms: Optional[int] = None

    @property
    def started(self) -> bool:
        return self._thread is not None

    def status(self) -> Dict[str, Any]:
        t = self._thread
        return {
            "running": bool(t is not None and t.is_alive() and not self._halt.is_set()),
            "unhealthy": self._unhealthy,
            "consecutive_failures": self._failures,
            "last_error": self._last_error,
            "last_completed": self._last_completed,
            "last_run_ms": self._last_run_ms,
            "interval_ms": self._cfg.interval_ms,
        }

    def start(self) -> bool:
        """Start the thread. False when disabled or another process holds the lock."""
        if self._thread is not None:
            return True
        if not self._cfg.enabled:
            log.info("dao sweep loop disabled")
            return False
        if not self._leader.try_acquire():
            log.info("dao sweep loop not started: lock held at %s", self._leader.path)
            return False

        self._halt.clear()
        self._thread = threading.Thread(target=self._run, name="aurumfox-dao-sweep", daemon=True)
        self._thread.start()
        inc_counter("sweep_loop_start_total", 1)
        log_event(log, "sweep_loop_started", interval_ms=self._cfg.interval_ms, lock_path=self._leader.path)
        return True

    def stop(self, timeout_s: float = 2.0) -> None:
        self._halt.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)
        self._leader.release()
        inc_counter("sweep_loop_stop_total", 1)

    def tick(self) -> int:
        """Run one sweep pass now. Errors propagate to the caller."""
        n = int(self._executor.sweep_expired())
        self._last_completed = n
        self._last_run_ms = int(time.time() * 1000)
        if n:
            log_event(log, "dao_sweep", completed=n)
        return n

    def _backoff_s(self) -> float:
        step = min(10, max(0, self._failures - 1))
        ms = min(self._cfg.error_backoff_max_ms, self._cfg.error_backoff_min_ms * (2**step))
        return ms / 1000.0

    def _record_failure(self, err: Exception) -> None:
        self._failures += 1
        self._last_error = f"{type(err).__name__}:{err}"
        inc_counter("sweep_loop_errors_total", 1)
        set_gauge("sweep_loop_consecutive_failures", self._failures)
        log.exception("dao sweep failed (%s in a row)", self._failures)

    def _record_success(self) -> None:
        if self._failures:
            log.info("dao sweep recovered after %s failures", self._failures)
        self._failures = 0
        self._last_error = ""
        set_gauge("sweep_loop_consecutive_failures", 0)

    def _run(self) -> None:
        interval_s = self._cfg.interval_ms / 1000.0
        while not self._halt.is_set():
            inc_counter("sweep_loop_ticks_total", 1)
            try:
                self.tick()
            except Exception as err:
                self._record_failure(err)
                if self._failures >= self._cfg.fail_fast_after:
                    self._unhealthy = True
                    set_gauge("sweep_loop_unhealthy", 1)
                    inc_counter("sweep_loop_failfast_total", 1)
                    log.error(
                        "dao sweep loop stopping: %s consecutive failures, last=%s",
                        self._failures,
                        self._last_error,
                    )
                    self._halt.set()
                    return
                self._halt.wait(self._backoff_s())
                continue
            self._record_success()
            self._halt.wait(interval_s)


__all__ = ["ProposalSweepLoop", "SweepLoopConfig", "sweep_loop_config_from_env"]
