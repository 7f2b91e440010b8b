# src/aurumfox/runtime/staking.py
from __future__ import annotations

"""Staking state machine.

Per wallet:  unstaked (staked_amount == 0) | staked (staked_amount > 0),
with an independent checkpointed reward balance.

Every mutating transition is a checkpoint: pending accrual is folded into
`rewards` and the accrual clock (`last_staked_or_unstaked`) restarts at
`now`. Changing the principal therefore never drops reward earned at the
old principal.

Each transition runs load -> fold -> mutate -> save under the wallet's
lock; the save is additionally version-checked by the store.
"""

import logging
import math
import time
from typing import Any, Callable, Optional

from aurumfox.crypto.wallet import is_valid_wallet_address
from aurumfox.ledger.accrual import live_rewards, pending_accrual, validate_annual_rate
from aurumfox.ledger.constants import STAKING_APR
from aurumfox.ledger.types import StakingReceipt, StakingRecord, StakingView
from aurumfox.runtime.event_log import log_event
from aurumfox.runtime.errors import InvalidAmount, InvalidWallet, NothingStaked, NothingToClaim, NotFound
from aurumfox.runtime.key_locks import KeyedLocks, staking_key
from aurumfox.runtime.metrics import inc_counter
from aurumfox.runtime.store import LedgerStore

log = logging.getLogger("aurumfox.staking")

Clock = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _require_wallet(wallet_address: Any) -> str:
    if not is_valid_wallet_address(wallet_address):
        raise InvalidWallet(
            "malformed_wallet_address",
            {"field": "walletAddress", "message": "not a valid Solana wallet address"},
        )
    return str(wallet_address)


def _require_amount(amount: Any) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmount("amount_not_numeric", {"field": "amount", "message": "amount must be a number"})
    v = float(amount)
    if not math.isfinite(v) or v <= 0.0:
        raise InvalidAmount("amount_not_positive", {"field": "amount", "message": "amount must be positive"})
    return v


class StakingEngine:
    def __init__(
        self,
        *,
        store: LedgerStore,
        locks: KeyedLocks,
        annual_rate: float = STAKING_APR,
        clock: Optional[Clock] = None,
    ) -> None:
        self._store = store
        self._locks = locks
        self._apr = validate_annual_rate(annual_rate)
        self._clock = clock or _now_ms

    @property
    def annual_rate(self) -> float:
        return self._apr

    def _fold(self, rec: StakingRecord, now: int) -> None:
        rec.rewards = float(rec.rewards) + pending_accrual(rec, now_ms=now, annual_rate=self._apr)

    def stake(self, wallet_address: str, amount: float) -> StakingRecord:
        wallet = _require_wallet(wallet_address)
        amt = _require_amount(amount)

        with self._locks.hold(staking_key(wallet)):
            now = int(self._clock())
            cur = self._store.load_staking(wallet)
            if cur is None:
                rec = StakingRecord.new(wallet, now_ms=now)
            else:
                rec = cur.copy()
                self._fold(rec, now)
            new_staked = float(rec.staked_amount) + amt
            if not math.isfinite(new_staked) or not math.isfinite(new_staked + float(rec.rewards)):
                inc_counter("staking_stake_rejected_total", 1)
                raise InvalidAmount(
                    "amount_overflows_balance",
                    {"field": "amount", "message": "amount would overflow the staked balance"},
                )
            rec.staked_amount = new_staked
            rec.last_staked_or_unstaked = now
            rec.updated_at = now
            saved = self._store.save_staking(rec)

        inc_counter("staking_stake_total", 1)
        log_event(
            log,
            "staking_stake",
            wallet=wallet,
            amount=amt,
            staked_amount=saved.staked_amount,
            rewards=saved.rewards,
            version=saved.version,
        )
        return saved

    def claim_rewards(self, wallet_address: str) -> StakingReceipt:
        wallet = _require_wallet(wallet_address)

        with self._locks.hold(staking_key(wallet)):
            now = int(self._clock())
            cur = self._store.load_staking(wallet)
            if cur is None:
                raise NotFound("staking_user_not_found", {"wallet_address": wallet})

            claimed = live_rewards(cur, now_ms=now, annual_rate=self._apr)
            if claimed <= 0.0:
                log.debug("claim rejected wallet=%s reason=nothing_to_claim", wallet)
                raise NothingToClaim("no_rewards_to_claim", {"wallet_address": wallet})

            rec = cur.copy()
            rec.rewards = 0.0
            rec.last_claimed = now
            rec.last_staked_or_unstaked = now
            rec.updated_at = now
            saved = self._store.save_staking(rec)

        inc_counter("staking_claim_total", 1)
        log_event(log, "staking_claim", wallet=wallet, claimed=claimed, version=saved.version)
        return StakingReceipt(action="claim", wallet_address=wallet, amount=claimed, record=saved)

    def unstake(self, wallet_address: str) -> StakingReceipt:
        wallet = _require_wallet(wallet_address)

        with self._locks.hold(staking_key(wallet)):
            now = int(self._clock())
            cur = self._store.load_staking(wallet)
            if cur is None:
                raise NotFound("staking_user_not_found", {"wallet_address": wallet})
            if cur.staked_amount <= 0.0:
                log.debug("unstake rejected wallet=%s reason=nothing_staked", wallet)
                raise NothingStaked("no_tokens_staked", {"wallet_address": wallet})

            rec = cur.copy()
            self._fold(rec, now)
            total = float(rec.staked_amount) + float(rec.rewards)

            rec.staked_amount = 0.0
            rec.rewards = 0.0
            rec.last_staked_or_unstaked = now
            rec.last_claimed = now
            rec.updated_at = now
            saved = self._store.save_staking(rec)

        inc_counter("staking_unstake_total", 1)
        log_event(log, "staking_unstake", wallet=wallet, returned=total, version=saved.version)
        return StakingReceipt(action="unstake", wallet_address=wallet, amount=total, record=saved)

    def query(self, wallet_address: str) -> StakingView:
        """Live position; recomputes accrual without persisting it."""
        wallet = _require_wallet(wallet_address)
        now = int(self._clock())
        rec = self._store.load_staking(wallet)
        if rec is None:
            return StakingView(
                wallet_address=wallet,
                staked_amount=0.0,
                rewards=0.0,
                last_claimed=None,
                last_staked_or_unstaked=None,
            )
        return StakingView(
            wallet_address=wallet,
            staked_amount=float(rec.staked_amount),
            rewards=live_rewards(rec, now_ms=now, annual_rate=self._apr),
            last_claimed=int(rec.last_claimed),
            last_staked_or_unstaked=int(rec.last_staked_or_unstaked),
        )


__all__ = ["StakingEngine"]
