# src/aurumfox/ledger/accrual.py
from __future__ import annotations

"""Staking reward accrual.

Rewards are simple (linear) interest on the principal that was staked at the
last checkpoint:

    reward = staked * (apr / 365) * (elapsed_ms / 86_400_000)

Nothing here touches storage or the clock. Callers pass `now_ms` explicitly,
which keeps the projection deterministic and trivially testable.
"""

import math
from typing import TYPE_CHECKING

from aurumfox.ledger.constants import DAYS_PER_YEAR, MS_PER_DAY

if TYPE_CHECKING:
    from aurumfox.ledger.types import StakingRecord


def _finite(x: float, *, name: str) -> float:
    if isinstance(x, bool):
        raise ValueError(f"{name} must be a number, not bool")
    v = float(x)
    if not math.isfinite(v):
        raise ValueError(f"{name} must be finite; got {x!r}")
    return v


def validate_annual_rate(annual_rate: float) -> float:
    r = _finite(annual_rate, name="annual_rate")
    if r < 0.0 or r >= 1.0:
        raise ValueError(f"annual_rate must be in [0, 1); got {annual_rate!r}")
    return r


def accrue(staked_amount: float, elapsed_ms: float, annual_rate: float) -> float:
    """Reward accrued by `staked_amount` over `elapsed_ms` at `annual_rate` APR.

    Negative elapsed time (clock skew between writers) is clamped to zero.
    """
    staked = _finite(staked_amount, name="staked_amount")
    if staked < 0.0:
        raise ValueError(f"staked_amount must be >= 0; got {staked_amount!r}")
    rate = validate_annual_rate(annual_rate)

    elapsed = _finite(elapsed_ms, name="elapsed_ms")
    if elapsed <= 0.0:
        return 0.0

    daily_rate = rate / DAYS_PER_YEAR
    elapsed_days = elapsed / MS_PER_DAY
    return staked * daily_rate * elapsed_days


def pending_accrual(record: "StakingRecord", *, now_ms: int, annual_rate: float) -> float:
    """Accrual since the record's last checkpoint, not yet folded into `rewards`."""
    return accrue(record.staked_amount, int(now_ms) - int(record.last_staked_or_unstaked), annual_rate)


def live_rewards(record: "StakingRecord", *, now_ms: int, annual_rate: float) -> float:
    return float(record.rewards) + pending_accrual(record, now_ms=now_ms, annual_rate=annual_rate)


__all__ = ["accrue", "live_rewards", "pending_accrual", "validate_annual_rate"]
