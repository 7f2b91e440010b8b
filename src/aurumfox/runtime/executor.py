# src/aurumfox/runtime/executor.py
from __future__ import annotations

"""AurumExecutor: the single entry point the API talks to.

Wires one store, one lock registry and both state machines together, and
runs every mutating operation under the transient-failure retry policy.
"""

import logging
from typing import Any, List, Optional

from aurumfox.ledger.types import DaoProposal, StakingReceipt, StakingRecord, StakingView
from aurumfox.runtime.core_config import CoreConfig, default_core_config
from aurumfox.runtime.dao import Clock, DaoEngine
from aurumfox.runtime.key_locks import KeyedLocks
from aurumfox.runtime.retry import RetryPolicy, call_with_retry
from aurumfox.runtime.staking import StakingEngine
from aurumfox.runtime.store import LedgerStore

log = logging.getLogger("aurumfox.executor")


class AurumExecutor:
    def __init__(
        self,
        *,
        store: LedgerStore,
        cfg: Optional[CoreConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        c = cfg or default_core_config()
        self.cfg = c
        self.store = store
        self.locks = KeyedLocks(timeout_ms=int(c.lock_timeout_ms))
        self.retry = RetryPolicy(
            attempts=int(c.retry_attempts),
            backoff_base_ms=int(c.retry_backoff_base_ms),
            backoff_max_ms=int(c.retry_backoff_max_ms),
        )
        self.staking = StakingEngine(store=store, locks=self.locks, annual_rate=float(c.staking_apr), clock=clock)
        self.dao = DaoEngine(store=store, locks=self.locks, voting_window_ms=int(c.voting_window_ms), clock=clock)
        log.info(
            "executor ready store=%s apr=%s window_ms=%s",
            type(store).__name__,
            c.staking_apr,
            c.voting_window_ms,
        )

    def now_ms(self) -> int:
        return self.dao.now_ms()

    # ---- staking ----

    def stake(self, wallet_address: Any, amount: Any) -> StakingRecord:
        return call_with_retry(lambda: self.staking.stake(wallet_address, amount), policy=self.retry, op="stake")

    def claim_rewards(self, wallet_address: Any) -> StakingReceipt:
        return call_with_retry(lambda: self.staking.claim_rewards(wallet_address), policy=self.retry, op="claim")

    def unstake(self, wallet_address: Any) -> StakingReceipt:
        return call_with_retry(lambda: self.staking.unstake(wallet_address), policy=self.retry, op="unstake")

    def query_staking(self, wallet_address: Any) -> StakingView:
        return self.staking.query(wallet_address)

    # ---- dao ----

    def create_proposal(self, title: Any, description: Any, creator_wallet: Any) -> DaoProposal:
        return call_with_retry(
            lambda: self.dao.create_proposal(title, description, creator_wallet),
            policy=self.retry,
            op="create_proposal",
        )

    def vote(self, proposal_id: Any, vote_type: Any, voter_wallet: Any) -> DaoProposal:
        return call_with_retry(
            lambda: self.dao.vote(proposal_id, vote_type, voter_wallet),
            policy=self.retry,
            op="vote",
        )

    def list_proposals(self) -> List[DaoProposal]:
        return self.dao.list_proposals()

    def get_proposal(self, proposal_id: Any) -> DaoProposal:
        return self.dao.get_proposal(proposal_id)

    def sweep_expired(self) -> int:
        return self.dao.sweep_expired()

    def ping(self) -> bool:
        return bool(self.store.ping())


__all__ = ["AurumExecutor"]
