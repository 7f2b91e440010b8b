from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aurumfox.runtime.errors import CoreError


@dataclass(eq=False)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def unauthorized(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(401, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def unavailable(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(503, code, message, details or {})

    def to_payload(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}


# code -> (HTTP status, client-facing message)
_CORE_STATUS: Dict[str, tuple[int, str]] = {
    "validation_error": (400, "Request validation failed."),
    "invalid_amount": (400, "Staking amount is required and must be positive."),
    "invalid_wallet": (400, "The provided wallet address is not a valid Solana public key format."),
    "invalid_vote_type": (400, 'Invalid vote type. Use "for" or "against".'),
    "not_found": (404, "Not found."),
    "nothing_to_claim": (400, "No rewards to claim."),
    "nothing_staked": (400, "You have no AFOX staked."),
    "duplicate_vote": (409, "You have already voted on this proposal."),
    "voting_closed": (400, "Voting for this proposal has ended."),
    "conflict": (503, "The record was modified concurrently. Please try again."),
    "busy": (503, "The record is busy. Please try again."),
    "store_unavailable": (503, "Storage is temporarily unavailable."),
    "invariant_violation": (500, "Internal state check failed."),
}

_NOT_FOUND_MESSAGES = {
    "staking_user_not_found": "Staking user not found.",
    "proposal_not_found": "Proposal not found.",
}


def _json_safe(v: Any) -> Any:
    """Strict JSON has no NaN or Infinity; such floats are reported as text."""
    if isinstance(v, float) and not math.isfinite(v):
        return repr(v)
    if isinstance(v, dict):
        return {str(k): _json_safe(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_json_safe(x) for x in v]
    return v


def api_error_from_core(e: CoreError) -> ApiError:
    status, message = _CORE_STATUS.get(e.code, (500, "Unexpected core error."))
    if e.code == "not_found":
        message = _NOT_FOUND_MESSAGES.get(e.reason, message)
    details: Dict[str, Any] = {"reason": e.reason}
    if isinstance(e.details, dict):
        details.update(e.details)
    elif e.details is not None:
        details["context"] = e.details
    return ApiError(status, e.code, message, _json_safe(details))
