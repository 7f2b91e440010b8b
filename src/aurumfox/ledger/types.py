"""aurumfox.ledger.types

Record types persisted by the ledger store:
  - StakingRecord: one per wallet, accrual checkpoint + principal
  - DaoProposal: one per proposal, vote counters + voter set
  - StakingView: read-only projection returned by staking queries

Records are plain mutable dataclasses. State machines copy a loaded record,
mutate the copy and hand it back to the store, which owns `version`.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from aurumfox.ledger.constants import STATUS_ACTIVE, STATUS_COMPLETED

Json = Dict[str, Any]


def _as_float(v: Any, *, name: str) -> float:
    if isinstance(v, bool):
        raise ValueError(f"record field '{name}' must be numeric (got bool)")
    try:
        return float(v)
    except Exception as e:
        raise ValueError(f"record field '{name}' must be float-coercible (got {type(v).__name__})") from e


def _as_int(v: Any, *, name: str) -> int:
    if isinstance(v, bool):
        raise ValueError(f"record field '{name}' must be int (got bool)")
    try:
        return int(v)
    except Exception as e:
        raise ValueError(f"record field '{name}' must be int-coercible (got {type(v).__name__})") from e


def _as_str(v: Any, *, name: str) -> str:
    if not isinstance(v, str):
        raise ValueError(f"record field '{name}' must be str (got {type(v).__name__})")
    return v


@dataclass
class StakingRecord:
    wallet_address: str
    staked_amount: float = 0.0
    rewards: float = 0.0
    last_claimed: int = 0
    last_staked_or_unstaked: int = 0
    created_at: int = 0
    updated_at: int = 0
    version: int = 0

    @classmethod
    def new(cls, wallet_address: str, *, now_ms: int) -> "StakingRecord":
        now = int(now_ms)
        return cls(
            wallet_address=wallet_address,
            last_claimed=now,
            last_staked_or_unstaked=now,
            created_at=now,
            updated_at=now,
        )

    def copy(self) -> "StakingRecord":
        return copy.copy(self)

    def to_dict(self) -> Json:
        return {
            "wallet_address": self.wallet_address,
            "staked_amount": float(self.staked_amount),
            "rewards": float(self.rewards),
            "last_claimed": int(self.last_claimed),
            "last_staked_or_unstaked": int(self.last_staked_or_unstaked),
            "created_at": int(self.created_at),
            "updated_at": int(self.updated_at),
            "version": int(self.version),
        }

    @classmethod
    def from_dict(cls, d: Json) -> "StakingRecord":
        return cls(
            wallet_address=_as_str(d.get("wallet_address"), name="wallet_address"),
            staked_amount=_as_float(d.get("staked_amount", 0.0), name="staked_amount"),
            rewards=_as_float(d.get("rewards", 0.0), name="rewards"),
            last_claimed=_as_int(d.get("last_claimed", 0), name="last_claimed"),
            last_staked_or_unstaked=_as_int(d.get("last_staked_or_unstaked", 0), name="last_staked_or_unstaked"),
            created_at=_as_int(d.get("created_at", 0), name="created_at"),
            updated_at=_as_int(d.get("updated_at", 0), name="updated_at"),
            version=_as_int(d.get("version", 0), name="version"),
        )


@dataclass(frozen=True)
class StakingView:
    """Live projection of a wallet's staking position. Never persisted."""

    wallet_address: str
    staked_amount: float
    rewards: float
    last_claimed: Optional[int]
    last_staked_or_unstaked: Optional[int]


@dataclass(frozen=True)
class StakingReceipt:
    """Outcome of a claim or unstake: the amount paid out plus the saved record."""

    action: str
    wallet_address: str
    amount: float
    record: StakingRecord


@dataclass
class DaoProposal:
    id: str
    title: str
    description: str
    creator_wallet: str
    created_at: int
    expires_at: int
    votes_for: int = 0
    votes_against: int = 0
    voters: Set[str] = field(default_factory=set)
    status: str = STATUS_ACTIVE
    updated_at: int = 0
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def voting_open(self, now_ms: int) -> bool:
        """True while votes would still be accepted at `now_ms`."""
        return self.is_active and int(now_ms) < int(self.expires_at)

    def has_voted(self, wallet_address: str) -> bool:
        return wallet_address in self.voters

    def copy(self) -> "DaoProposal":
        out = copy.copy(self)
        out.voters = set(self.voters)
        return out

    def to_dict(self) -> Json:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "creator_wallet": self.creator_wallet,
            "created_at": int(self.created_at),
            "expires_at": int(self.expires_at),
            "votes_for": int(self.votes_for),
            "votes_against": int(self.votes_against),
            # Sorted so the serialized form is stable.
            "voters": sorted(self.voters),
            "status": self.status,
            "updated_at": int(self.updated_at),
            "version": int(self.version),
        }

    @classmethod
    def from_dict(cls, d: Json) -> "DaoProposal":
        raw_voters = d.get("voters") or []
        if not isinstance(raw_voters, (list, tuple, set, frozenset)):
            raise ValueError(f"record field 'voters' must be a list (got {type(raw_voters).__name__})")
        voters = {_as_str(v, name="voters[]") for v in raw_voters}
        if len(voters) != len(list(raw_voters)):
            raise ValueError("record field 'voters' contains duplicates")
        return cls(
            id=_as_str(d.get("id"), name="id"),
            title=_as_str(d.get("title"), name="title"),
            description=_as_str(d.get("description"), name="description"),
            creator_wallet=_as_str(d.get("creator_wallet"), name="creator_wallet"),
            created_at=_as_int(d.get("created_at"), name="created_at"),
            expires_at=_as_int(d.get("expires_at"), name="expires_at"),
            votes_for=_as_int(d.get("votes_for", 0), name="votes_for"),
            votes_against=_as_int(d.get("votes_against", 0), name="votes_against"),
            voters=voters,
            status=_as_str(d.get("status", STATUS_ACTIVE), name="status"),
            updated_at=_as_int(d.get("updated_at", 0), name="updated_at"),
            version=_as_int(d.get("version", 0), name="version"),
        )


__all__ = ["DaoProposal", "StakingReceipt", "StakingRecord", "StakingView"]
