# src/aurumfox/ledger/constants.py
from __future__ import annotations

from typing import Final

TOKEN_SYMBOL: Final[str] = "AFOX"

# 10% APR, simple interest.
STAKING_APR: Final[float] = 0.10

DAYS_PER_YEAR: Final[int] = 365
MS_PER_DAY: Final[int] = 24 * 60 * 60 * 1000

VOTING_WINDOW_DAYS: Final[int] = 7
VOTING_WINDOW_MS: Final[int] = VOTING_WINDOW_DAYS * MS_PER_DAY

TITLE_MIN_LEN: Final[int] = 5
TITLE_MAX_LEN: Final[int] = 200
DESCRIPTION_MIN_LEN: Final[int] = 20
DESCRIPTION_MAX_LEN: Final[int] = 5000

VOTE_FOR: Final[str] = "for"
VOTE_AGAINST: Final[str] = "against"
VOTE_TYPES: Final[frozenset[str]] = frozenset({VOTE_FOR, VOTE_AGAINST})

STATUS_ACTIVE: Final[str] = "active"
STATUS_COMPLETED: Final[str] = "completed"
PROPOSAL_STATUSES: Final[frozenset[str]] = frozenset({STATUS_ACTIVE, STATUS_COMPLETED})
