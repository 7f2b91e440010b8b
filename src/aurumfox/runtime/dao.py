# src/aurumfox/runtime/dao.py
from __future__ import annotations

"""DAO proposal state machine.

States: active -> completed (terminal). A proposal completes when its
voting window has passed and it is touched by a vote attempt or by an
explicit sweep. Expiry is always re-checked against the clock inside the
vote transition, so a missing or slow sweep never lets a late vote in.
"""

import logging
import re
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from aurumfox.crypto.wallet import is_valid_wallet_address
from aurumfox.ledger.constants import (
    DESCRIPTION_MAX_LEN,
    DESCRIPTION_MIN_LEN,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    TITLE_MAX_LEN,
    TITLE_MIN_LEN,
    VOTE_FOR,
    VOTE_TYPES,
    VOTING_WINDOW_MS,
)
from aurumfox.ledger.types import DaoProposal
from aurumfox.runtime.errors import (
    Busy,
    Conflict,
    DuplicateVote,
    InvalidVoteType,
    InvalidWallet,
    NotFound,
    ValidationError,
    VotingClosed,
)
from aurumfox.runtime.event_log import log_event
from aurumfox.runtime.key_locks import KeyedLocks, proposal_key
from aurumfox.runtime.metrics import inc_counter
from aurumfox.runtime.store import LedgerStore

log = logging.getLogger("aurumfox.dao")

Clock = Callable[[], int]

_PROPOSAL_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def _now_ms() -> int:
    return int(time.time() * 1000)


def new_proposal_id() -> str:
    return uuid.uuid4().hex


def _check_len(errors: Dict[str, str], field: str, value: Any, lo: int, hi: int, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        errors[field] = f"{label} is required."
        return ""
    s = value.strip()
    if len(s) < lo:
        errors[field] = f"{label} must be at least {lo} characters long."
    elif len(s) > hi:
        errors[field] = f"{label} cannot exceed {hi} characters."
    return s


class DaoEngine:
    def __init__(
        self,
        *,
        store: LedgerStore,
        locks: KeyedLocks,
        voting_window_ms: int = VOTING_WINDOW_MS,
        clock: Optional[Clock] = None,
    ) -> None:
        if int(voting_window_ms) <= 0:
            raise ValueError(f"voting_window_ms must be > 0; got {voting_window_ms}")
        self._store = store
        self._locks = locks
        self._window_ms = int(voting_window_ms)
        self._clock = clock or _now_ms

    @property
    def voting_window_ms(self) -> int:
        return self._window_ms

    def now_ms(self) -> int:
        return int(self._clock())

    def create_proposal(self, title: Any, description: Any, creator_wallet: Any) -> DaoProposal:
        errors: Dict[str, str] = {}
        t = _check_len(errors, "title", title, TITLE_MIN_LEN, TITLE_MAX_LEN, "Proposal title")
        d = _check_len(
            errors, "description", description, DESCRIPTION_MIN_LEN, DESCRIPTION_MAX_LEN, "Proposal description"
        )
        if not is_valid_wallet_address(creator_wallet):
            errors["creatorWallet"] = "not a valid Solana wallet address"
        if errors:
            raise ValidationError("proposal_validation_failed", {"fields": errors})

        now = int(self._clock())
        p = DaoProposal(
            id=new_proposal_id(),
            title=t,
            description=d,
            creator_wallet=str(creator_wallet),
            created_at=now,
            expires_at=now + self._window_ms,
            status=STATUS_ACTIVE,
            updated_at=now,
        )
        # Fresh id: no other writer can hold this key yet, the CAS on version 0 suffices.
        saved = self._store.save_proposal(p)

        inc_counter("dao_proposal_create_total", 1)
        log_event(
            log,
            "dao_proposal_created",
            proposal_id=saved.id,
            creator=saved.creator_wallet,
            expires_at=saved.expires_at,
        )
        return saved

    def vote(self, proposal_id: Any, vote_type: Any, voter_wallet: Any) -> DaoProposal:
        if not isinstance(vote_type, str) or vote_type not in VOTE_TYPES:
            raise InvalidVoteType(
                "vote_type_must_be_for_or_against",
                {"field": "voteType", "message": 'Invalid vote type. Use "for" or "against".'},
            )
        if not is_valid_wallet_address(voter_wallet):
            raise InvalidWallet(
                "malformed_wallet_address",
                {"field": "voterWallet", "message": "not a valid Solana wallet address"},
            )
        pid = str(proposal_id or "")
        if not _PROPOSAL_ID_RE.match(pid):
            raise NotFound("proposal_not_found", {"proposal_id": pid})

        with self._locks.hold(proposal_key(pid)):
            now = int(self._clock())
            cur = self._store.load_proposal(pid)
            if cur is None:
                raise NotFound("proposal_not_found", {"proposal_id": pid})

            if now >= int(cur.expires_at):
                if cur.is_active:
                    closed = cur.copy()
                    closed.status = STATUS_COMPLETED
                    closed.updated_at = now
                    self._store.save_proposal(closed)
                    inc_counter("dao_proposal_completed_total", 1)
                    log_event(log, "dao_proposal_completed", proposal_id=pid, trigger="vote")
                inc_counter("dao_vote_rejected_total", 1)
                raise VotingClosed("voting_period_ended", {"proposal_id": pid, "expires_at": int(cur.expires_at)})

            if not cur.is_active:
                # Completed before its window ended; no such path today, keep it closed regardless.
                inc_counter("dao_vote_rejected_total", 1)
                raise VotingClosed("proposal_completed", {"proposal_id": pid})

            if cur.has_voted(voter_wallet):
                inc_counter("dao_vote_rejected_total", 1)
                log.debug("duplicate vote proposal=%s wallet=%s", pid, voter_wallet)
                raise DuplicateVote("wallet_already_voted", {"proposal_id": pid, "voter_wallet": voter_wallet})

            upd = cur.copy()
            if vote_type == VOTE_FOR:
                upd.votes_for += 1
            else:
                upd.votes_against += 1
            upd.voters.add(str(voter_wallet))
            upd.updated_at = now
            saved = self._store.save_proposal(upd)

        inc_counter("dao_vote_total", 1)
        log_event(
            log,
            "dao_vote",
            proposal_id=pid,
            voter=str(voter_wallet),
            vote_type=vote_type,
            votes_for=saved.votes_for,
            votes_against=saved.votes_against,
        )
        return saved

    def list_proposals(self) -> List[DaoProposal]:
        """All proposals, newest first. Read-only: expired ones keep their stored status."""
        return self._store.list_proposals()

    def get_proposal(self, proposal_id: Any) -> DaoProposal:
        pid = str(proposal_id or "")
        p = self._store.load_proposal(pid) if _PROPOSAL_ID_RE.match(pid) else None
        if p is None:
            raise NotFound("proposal_not_found", {"proposal_id": pid})
        return p

    def sweep_expired(self) -> int:
        """Complete every active proposal whose window has passed.

        Each proposal is re-loaded under its own lock, so a vote racing the
        sweep either lands before expiry or sees the proposal closed.
        Proposals whose lock is busy or whose save conflicts are left for
        the next sweep; lazy expiry in vote() still covers them.
        """
        completed = 0
        for pid in self._store.list_expired_active_proposal_ids(int(self._clock())):
            try:
                with self._locks.hold(proposal_key(pid)):
                    now = int(self._clock())
                    cur = self._store.load_proposal(pid)
                    if cur is None or not cur.is_active or now < int(cur.expires_at):
                        continue
                    closed = cur.copy()
                    closed.status = STATUS_COMPLETED
                    closed.updated_at = now
                    self._store.save_proposal(closed)
            except (Busy, Conflict) as e:
                log.warning("sweep skipped proposal=%s err=%s", pid, e)
                continue
            completed += 1
            inc_counter("dao_proposal_completed_total", 1)
            log_event(log, "dao_proposal_completed", proposal_id=pid, trigger="sweep")
        return completed


__all__ = ["DaoEngine", "new_proposal_id"]
