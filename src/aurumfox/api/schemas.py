from __future__ import annotations

"""Pydantic request schemas for the public API.

Wire fields are camelCase. Value rules (positive amounts, wallet syntax,
title lengths) are enforced by the core so every entry point shares them;
these models only pin the request shape.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    signature: Optional[str] = Field(default=None, description="Wallet signature over the canonical action message")


class StakeRequest(_Request):
    wallet_address: str = Field(..., alias="walletAddress", description="Solana wallet address (base58)")
    amount: Any = Field(default=None, description="AFOX amount to stake; must be positive")


class WalletRequest(_Request):
    wallet_address: str = Field(..., alias="walletAddress", description="Solana wallet address (base58)")


class CreateProposalRequest(_Request):
    title: Any = Field(default=None, description="5-200 characters")
    description: Any = Field(default=None, description="20-5000 characters")
    creator_wallet: str = Field(..., alias="creatorWallet")


class VoteRequest(_Request):
    proposal_id: str = Field(..., alias="proposalId")
    vote_type: str = Field(..., alias="voteType", description='"for" or "against"')
    voter_wallet: str = Field(..., alias="voterWallet")
