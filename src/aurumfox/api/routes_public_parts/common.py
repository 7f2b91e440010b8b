from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from aurumfox.api.errors import ApiError
from aurumfox.ledger.types import DaoProposal, StakingRecord, StakingView

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.unavailable("not_ready", "executor not attached to app.state", {})
    return ex


def _int_param(v: Any, default: int) -> int:
    """Parse an int-ish query param safely."""
    if v is None:
        return int(default)
    try:
        s = str(v).strip()
        if s == "":
            return int(default)
        return int(s)
    except ValueError:
        return int(default)


def staking_view_to_wire(v: StakingView) -> Json:
    return {
        "walletAddress": v.wallet_address,
        "stakedAmount": float(v.staked_amount),
        "rewards": float(v.rewards),
        "lastClaimed": v.last_claimed,
        "lastStakedOrUnstaked": v.last_staked_or_unstaked,
    }


def staking_record_to_wire(r: StakingRecord) -> Json:
    return {
        "walletAddress": r.wallet_address,
        "stakedAmount": float(r.staked_amount),
        "rewards": float(r.rewards),
        "lastClaimed": int(r.last_claimed),
        "lastStakedOrUnstaked": int(r.last_staked_or_unstaked),
        "createdAt": int(r.created_at),
        "updatedAt": int(r.updated_at),
    }


def proposal_to_wire(p: DaoProposal, *, now_ms: int) -> Json:
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "creatorWallet": p.creator_wallet,
        "createdAt": int(p.created_at),
        "expiresAt": int(p.expires_at),
        "votesFor": int(p.votes_for),
        "votesAgainst": int(p.votes_against),
        "voters": sorted(p.voters),
        "status": p.status,
        # Derived: a proposal past its window reads as closed before any sweep runs.
        "votingOpen": p.voting_open(now_ms),
        "updatedAt": int(p.updated_at),
    }
