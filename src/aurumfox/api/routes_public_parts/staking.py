# src/aurumfox/api/routes_public_parts/staking.py
from __future__ import annotations

from fastapi import APIRouter, Request

from aurumfox.api.routes_public_parts.common import _executor, staking_record_to_wire, staking_view_to_wire
from aurumfox.api.schemas import StakeRequest, WalletRequest
from aurumfox.api.security import require_wallet_signature
from aurumfox.ledger.constants import TOKEN_SYMBOL

router = APIRouter()


@router.get("/staking/{wallet_address}")
def v1_staking_get(wallet_address: str, request: Request):
    ex = _executor(request)
    view = ex.query_staking(wallet_address)
    return {"ok": True, "staking": staking_view_to_wire(view)}


@router.post("/staking/stake")
def v1_staking_stake(body: StakeRequest, request: Request):
    require_wallet_signature(
        request,
        action="stake",
        wallet_address=body.wallet_address,
        fields={"walletAddress": body.wallet_address, "amount": body.amount},
        signature=body.signature,
    )
    rec = _executor(request).stake(body.wallet_address, body.amount)
    return {"ok": True, "message": "Staking successful.", "user": staking_record_to_wire(rec)}


@router.post("/staking/claim-rewards")
def v1_staking_claim(body: WalletRequest, request: Request):
    require_wallet_signature(
        request,
        action="claim-rewards",
        wallet_address=body.wallet_address,
        fields={"walletAddress": body.wallet_address},
        signature=body.signature,
    )
    receipt = _executor(request).claim_rewards(body.wallet_address)
    return {
        "ok": True,
        "message": f"Successfully claimed {receipt.amount:.2f} {TOKEN_SYMBOL} rewards.",
        "claimed": float(receipt.amount),
        "user": staking_record_to_wire(receipt.record),
    }


@router.post("/staking/unstake")
def v1_staking_unstake(body: WalletRequest, request: Request):
    require_wallet_signature(
        request,
        action="unstake",
        wallet_address=body.wallet_address,
        fields={"walletAddress": body.wallet_address},
        signature=body.signature,
    )
    receipt = _executor(request).unstake(body.wallet_address)
    return {
        "ok": True,
        "message": f"Successfully unstaked {receipt.amount:.2f} {TOKEN_SYMBOL}.",
        "unstaked": float(receipt.amount),
        "user": staking_record_to_wire(receipt.record),
    }
