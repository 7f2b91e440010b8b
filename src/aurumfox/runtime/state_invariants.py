# src/aurumfox/runtime/state_invariants.py
from __future__ import annotations

"""Record invariants checked before every save.

Stores call these right before writing. A record that fails here is never
persisted, so a buggy transition surfaces as a server error instead of a
corrupt ledger row.
"""

import math

from aurumfox.ledger.constants import PROPOSAL_STATUSES
from aurumfox.ledger.types import DaoProposal, StakingRecord
from aurumfox.runtime.errors import InvariantViolation


def _check_amount(rec: StakingRecord, field: str) -> None:
    v = float(getattr(rec, field))
    if not math.isfinite(v):
        raise InvariantViolation(f"{field}_not_finite", {"wallet_address": rec.wallet_address, field: repr(v)})
    if v < 0.0:
        raise InvariantViolation(f"{field}_negative", {"wallet_address": rec.wallet_address, field: v})


def check_staking_record(rec: StakingRecord) -> StakingRecord:
    if not isinstance(rec, StakingRecord):
        raise InvariantViolation("not_a_staking_record", {"type": type(rec).__name__})
    if not rec.wallet_address:
        raise InvariantViolation("missing_wallet_address", {})
    _check_amount(rec, "staked_amount")
    _check_amount(rec, "rewards")
    return rec


def check_proposal(p: DaoProposal) -> DaoProposal:
    if not isinstance(p, DaoProposal):
        raise InvariantViolation("not_a_proposal", {"type": type(p).__name__})
    if not p.id:
        raise InvariantViolation("missing_proposal_id", {})
    if p.status not in PROPOSAL_STATUSES:
        raise InvariantViolation("unknown_status", {"proposal_id": p.id, "status": p.status})
    if p.votes_for < 0 or p.votes_against < 0:
        raise InvariantViolation(
            "negative_vote_counter",
            {"proposal_id": p.id, "votes_for": p.votes_for, "votes_against": p.votes_against},
        )
    if p.votes_for + p.votes_against != len(p.voters):
        raise InvariantViolation(
            "vote_count_mismatch",
            {
                "proposal_id": p.id,
                "votes_for": p.votes_for,
                "votes_against": p.votes_against,
                "voters": len(p.voters),
            },
        )
    if p.expires_at <= p.created_at:
        raise InvariantViolation(
            "expiry_not_after_creation",
            {"proposal_id": p.id, "created_at": p.created_at, "expires_at": p.expires_at},
        )
    return p


def check_status_transition(before: DaoProposal, after: DaoProposal) -> None:
    """completed is terminal; a completed proposal never changes its counters."""
    if before.is_completed and not after.is_completed:
        raise InvariantViolation("status_reversed", {"proposal_id": after.id})
    if before.is_completed and (
        before.votes_for != after.votes_for
        or before.votes_against != after.votes_against
        or before.voters != after.voters
    ):
        raise InvariantViolation("vote_after_completion", {"proposal_id": after.id})


__all__ = ["check_proposal", "check_staking_record", "check_status_transition"]
