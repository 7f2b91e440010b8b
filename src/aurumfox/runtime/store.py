# src/aurumfox/runtime/store.py
from __future__ import annotations

"""Ledger store contract + in-process adapter.

Every save is a compare-and-swap on `version`:
  - the caller passes the record as it was loaded (version N, or 0 if new)
  - the store writes it as version N+1 only if the stored version is still N
  - otherwise it raises Conflict and writes nothing

The state machines also serialize per key in-process (see key_locks), so a
Conflict only shows up when several processes share one durable store.
"""

import threading
from typing import Dict, List, Optional, Protocol, runtime_checkable

from aurumfox.ledger.constants import STATUS_ACTIVE
from aurumfox.ledger.types import DaoProposal, Json, StakingRecord
from aurumfox.runtime.errors import Conflict
from aurumfox.runtime.state_invariants import check_proposal, check_staking_record, check_status_transition


@runtime_checkable
class LedgerStore(Protocol):
    def load_staking(self, wallet_address: str) -> Optional[StakingRecord]: ...

    def save_staking(self, record: StakingRecord) -> StakingRecord: ...

    def load_proposal(self, proposal_id: str) -> Optional[DaoProposal]: ...

    def save_proposal(self, record: DaoProposal) -> DaoProposal: ...

    def list_proposals(self) -> List[DaoProposal]: ...

    def list_expired_active_proposal_ids(self, now_ms: int) -> List[str]: ...

    def ping(self) -> bool: ...


def proposal_sort_key(p: DaoProposal) -> tuple[int, str]:
    return (int(p.created_at), str(p.id))


class MemoryLedgerStore:
    """Thread-safe in-memory store with the same CAS semantics as SQLite.

    Records are kept as dict snapshots so callers never alias stored state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._staking: Dict[str, Json] = {}
        self._proposals: Dict[str, Json] = {}

    def load_staking(self, wallet_address: str) -> Optional[StakingRecord]:
        with self._lock:
            raw = self._staking.get(wallet_address)
        return StakingRecord.from_dict(raw) if raw is not None else None

    def save_staking(self, record: StakingRecord) -> StakingRecord:
        check_staking_record(record)
        with self._lock:
            cur = self._staking.get(record.wallet_address)
            have = int(cur["version"]) if cur is not None else 0
            if have != int(record.version):
                raise Conflict(
                    "stale_staking_record",
                    {"wallet_address": record.wallet_address, "expected": int(record.version), "have": have},
                )
            snap = record.to_dict()
            snap["version"] = have + 1
            self._staking[record.wallet_address] = snap
        return StakingRecord.from_dict(snap)

    def load_proposal(self, proposal_id: str) -> Optional[DaoProposal]:
        with self._lock:
            raw = self._proposals.get(proposal_id)
        return DaoProposal.from_dict(raw) if raw is not None else None

    def save_proposal(self, record: DaoProposal) -> DaoProposal:
        check_proposal(record)
        with self._lock:
            cur = self._proposals.get(record.id)
            have = int(cur["version"]) if cur is not None else 0
            if have != int(record.version):
                raise Conflict(
                    "stale_proposal",
                    {"proposal_id": record.id, "expected": int(record.version), "have": have},
                )
            if cur is not None:
                check_status_transition(DaoProposal.from_dict(cur), record)
            snap = record.to_dict()
            snap["version"] = have + 1
            self._proposals[record.id] = snap
        return DaoProposal.from_dict(snap)

    def list_proposals(self) -> List[DaoProposal]:
        with self._lock:
            snaps = list(self._proposals.values())
        out = [DaoProposal.from_dict(s) for s in snaps]
        out.sort(key=proposal_sort_key, reverse=True)
        return out

    def list_expired_active_proposal_ids(self, now_ms: int) -> List[str]:
        with self._lock:
            snaps = list(self._proposals.values())
        return sorted(
            str(s["id"]) for s in snaps if s.get("status") == STATUS_ACTIVE and int(s["expires_at"]) <= int(now_ms)
        )

    def ping(self) -> bool:
        return True


__all__ = ["LedgerStore", "MemoryLedgerStore", "proposal_sort_key"]
