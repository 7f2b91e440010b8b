from __future__ import annotations

import math

import pytest

from aurumfox.ledger.accrual import accrue, live_rewards, pending_accrual, validate_annual_rate
from aurumfox.ledger.constants import MS_PER_DAY, STAKING_APR
from aurumfox.ledger.types import StakingRecord


def test_one_day_at_ten_percent() -> None:
    got = accrue(100.0, MS_PER_DAY, STAKING_APR)
    assert got == pytest.approx(100.0 * 0.10 / 365.0)
    assert round(got, 4) == 0.0274


def test_accrual_is_linear_in_time() -> None:
    a = accrue(250.0, 3 * MS_PER_DAY, 0.10)
    b = accrue(250.0, 4 * MS_PER_DAY, 0.10)
    assert accrue(250.0, 7 * MS_PER_DAY, 0.10) == pytest.approx(a + b)


def test_full_year_pays_the_apr() -> None:
    assert accrue(1000.0, 365 * MS_PER_DAY, 0.10) == pytest.approx(100.0)


@pytest.mark.parametrize("elapsed", [0, -1, -MS_PER_DAY])
def test_non_positive_elapsed_accrues_nothing(elapsed: int) -> None:
    assert accrue(100.0, elapsed, 0.10) == 0.0


def test_zero_principal_or_rate_accrues_nothing() -> None:
    assert accrue(0.0, MS_PER_DAY, 0.10) == 0.0
    assert accrue(100.0, MS_PER_DAY, 0.0) == 0.0


@pytest.mark.parametrize("rate", [-0.01, 1.0, 2.5, math.nan, math.inf])
def test_rejects_out_of_range_rates(rate: float) -> None:
    with pytest.raises(ValueError):
        validate_annual_rate(rate)


def test_rejects_negative_or_non_finite_principal() -> None:
    with pytest.raises(ValueError):
        accrue(-1.0, MS_PER_DAY, 0.10)
    with pytest.raises(ValueError):
        accrue(math.inf, MS_PER_DAY, 0.10)


def test_live_rewards_add_checkpoint_and_pending() -> None:
    rec = StakingRecord(wallet_address="w", staked_amount=100.0, rewards=1.5, last_staked_or_unstaked=0)
    pending = pending_accrual(rec, now_ms=MS_PER_DAY, annual_rate=0.10)
    assert pending == pytest.approx(100.0 * 0.10 / 365.0)
    assert live_rewards(rec, now_ms=MS_PER_DAY, annual_rate=0.10) == pytest.approx(1.5 + pending)


def test_clock_skew_never_reduces_rewards() -> None:
    rec = StakingRecord(wallet_address="w", staked_amount=100.0, rewards=2.0, last_staked_or_unstaked=10_000)
    assert live_rewards(rec, now_ms=5_000, annual_rate=0.10) == 2.0
