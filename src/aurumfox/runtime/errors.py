from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(eq=False)
class CoreError(Exception):
    """Canonical error type for staking and DAO transitions.

    `code` is fixed per subclass; `reason` is a short machine-readable string
    and `details` carries field-level context for the caller.
    """

    code: ClassVar[str] = "core_error"
    transient: ClassVar[bool] = False

    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class ValidationError(CoreError):
    code = "validation_error"


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class InvalidWallet(ValidationError):
    code = "invalid_wallet"


class InvalidVoteType(ValidationError):
    code = "invalid_vote_type"


class NotFound(CoreError):
    code = "not_found"


class NothingToClaim(CoreError):
    code = "nothing_to_claim"


class NothingStaked(CoreError):
    code = "nothing_staked"


class DuplicateVote(CoreError):
    code = "duplicate_vote"


class VotingClosed(CoreError):
    code = "voting_closed"


class Conflict(CoreError):
    """A versioned save lost a race with another writer."""

    code = "conflict"
    transient = True


class Busy(CoreError):
    """A per-key lock could not be acquired within its deadline."""

    code = "busy"
    transient = True


class StoreUnavailable(CoreError):
    code = "store_unavailable"


class InvariantViolation(CoreError):
    code = "invariant_violation"


__all__ = [
    "Busy",
    "Conflict",
    "CoreError",
    "DuplicateVote",
    "InvalidAmount",
    "InvalidVoteType",
    "InvalidWallet",
    "InvariantViolation",
    "NotFound",
    "NothingStaked",
    "NothingToClaim",
    "StoreUnavailable",
    "ValidationError",
    "VotingClosed",
]
