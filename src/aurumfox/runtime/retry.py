# src/aurumfox/runtime/retry.py
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from aurumfox.runtime.errors import CoreError
from aurumfox.runtime.metrics import inc_counter

log = logging.getLogger("aurumfox.retry")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = 5
    backoff_base_ms: int = 10
    backoff_max_ms: int = 250

    def sleep_s(self, attempt: int) -> float:
        """Exponential backoff with jitter in [0.5x, 1.5x], capped."""
        base = max(0.001, float(self.backoff_base_ms) / 1000.0)
        cap = max(base, float(self.backoff_max_ms) / 1000.0)
        s = min(cap, base * (2.0 ** min(attempt, 8)))
        return s * (0.5 + random.random())


def call_with_retry(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    op: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run `fn`, retrying transient CoreErrors (Conflict, Busy).

    Business-rule failures propagate on the first raise. After `attempts`
    transient failures the last one propagates unchanged.
    """
    attempts = max(1, int(policy.attempts))
    attempt = 0
    while True:
        try:
            return fn()
        except CoreError as e:
            if not e.transient:
                raise
            attempt += 1
            inc_counter("executor_retry_total", 1)
            if attempt >= attempts:
                inc_counter("executor_retry_exhausted_total", 1)
                log.warning("retries exhausted op=%s attempts=%s err=%s", op, attempt, e)
                raise
            log.warning("transient failure op=%s attempt=%s err=%s", op, attempt, e)
            sleep(policy.sleep_s(attempt - 1))


__all__ = ["RetryPolicy", "call_with_retry"]
