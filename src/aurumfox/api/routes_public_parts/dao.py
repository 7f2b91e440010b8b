# src/aurumfox/api/routes_public_parts/dao.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Request

from aurumfox.api.routes_public_parts.common import _executor, _int_param, proposal_to_wire
from aurumfox.api.schemas import CreateProposalRequest, VoteRequest
from aurumfox.api.security import require_wallet_signature

router = APIRouter()


@router.get("/dao/proposals")
def v1_dao_proposals(request: Request):
    ex = _executor(request)
    limit = _int_param(request.query_params.get("limit"), 50)
    limit = max(1, min(200, limit))

    now = ex.now_ms()
    items: List[dict] = [proposal_to_wire(p, now_ms=now) for p in ex.list_proposals()[:limit]]
    return {"ok": True, "message": "Successfully retrieved all DAO proposals.", "proposals": items}


@router.get("/dao/proposals/{proposal_id}")
def v1_dao_proposal_get(proposal_id: str, request: Request):
    ex = _executor(request)
    p = ex.get_proposal(proposal_id)
    return {"ok": True, "proposal": proposal_to_wire(p, now_ms=ex.now_ms())}


@router.post("/dao/proposals", status_code=201)
def v1_dao_proposal_create(body: CreateProposalRequest, request: Request):
    require_wallet_signature(
        request,
        action="create-proposal",
        wallet_address=body.creator_wallet,
        fields={"title": body.title, "description": body.description, "creatorWallet": body.creator_wallet},
        signature=body.signature,
    )
    ex = _executor(request)
    p = ex.create_proposal(body.title, body.description, body.creator_wallet)
    return {
        "ok": True,
        "message": "DAO proposal successfully created and saved!",
        "proposal": proposal_to_wire(p, now_ms=ex.now_ms()),
    }


@router.post("/dao/vote")
def v1_dao_vote(body: VoteRequest, request: Request):
    require_wallet_signature(
        request,
        action="vote",
        wallet_address=body.voter_wallet,
        fields={"proposalId": body.proposal_id, "voteType": body.vote_type, "voterWallet": body.voter_wallet},
        signature=body.signature,
    )
    ex = _executor(request)
    p = ex.vote(body.proposal_id, body.vote_type, body.voter_wallet)
    return {"ok": True, "message": "Vote successfully cast!", "proposal": proposal_to_wire(p, now_ms=ex.now_ms())}


@router.post("/dao/sweep")
def v1_dao_sweep(request: Request):
    """Complete every expired proposal now (operator trigger)."""
    n = _executor(request).sweep_expired()
    return {"ok": True, "completed": int(n)}
