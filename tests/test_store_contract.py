from __future__ import annotations

from pathlib import Path

import pytest

from aurumfox.ledger.constants import STATUS_ACTIVE, STATUS_COMPLETED
from aurumfox.ledger.types import DaoProposal, StakingRecord
from aurumfox.runtime.errors import Conflict, InvariantViolation
from aurumfox.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from aurumfox.runtime.store import LedgerStore, MemoryLedgerStore


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request: pytest.FixtureRequest, tmp_path: Path) -> LedgerStore:
    if request.param == "memory":
        return MemoryLedgerStore()
    return SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))


def _proposal(pid: str, *, created_at: int = 1_000, expires_at: int = 2_000) -> DaoProposal:
    return DaoProposal(
        id=pid,
        title="A proposal title",
        description="A description that is long enough.",
        creator_wallet="creator",
        created_at=created_at,
        expires_at=expires_at,
        updated_at=created_at,
    )


def test_store_satisfies_protocol(any_store: LedgerStore) -> None:
    assert isinstance(any_store, LedgerStore)
    assert any_store.ping() is True


def test_staking_save_is_versioned(any_store: LedgerStore) -> None:
    rec = StakingRecord(wallet_address="w1", staked_amount=10.0, last_claimed=5, last_staked_or_unstaked=5)
    saved = any_store.save_staking(rec)
    assert saved.version == 1
    assert any_store.load_staking("w1") == saved

    upd = saved.copy()
    upd.staked_amount = 20.0
    saved2 = any_store.save_staking(upd)
    assert saved2.version == 2
    assert any_store.load_staking("w1").staked_amount == 20.0


def test_stale_staking_save_conflicts_and_writes_nothing(any_store: LedgerStore) -> None:
    first = any_store.save_staking(StakingRecord(wallet_address="w1", staked_amount=1.0))

    stale = StakingRecord(wallet_address="w1", staked_amount=99.0)  # version 0
    with pytest.raises(Conflict):
        any_store.save_staking(stale)

    ahead = first.copy()
    ahead.version = 7
    with pytest.raises(Conflict):
        any_store.save_staking(ahead)

    assert any_store.load_staking("w1") == first


def test_loaded_records_are_not_aliased(any_store: LedgerStore) -> None:
    any_store.save_proposal(_proposal("a" * 32))
    got = any_store.load_proposal("a" * 32)
    got.voters.add("intruder")
    got.votes_for += 1
    again = any_store.load_proposal("a" * 32)
    assert again.voters == set()
    assert again.votes_for == 0


def test_proposal_roundtrip_with_voters(any_store: LedgerStore) -> None:
    p = any_store.save_proposal(_proposal("a" * 32))
    upd = p.copy()
    upd.votes_for = 1
    upd.votes_against = 1
    upd.voters = {"w2", "w1"}
    saved = any_store.save_proposal(upd)

    loaded = any_store.load_proposal("a" * 32)
    assert loaded == saved
    assert loaded.voters == {"w1", "w2"}
    assert loaded.version == 2


def test_missing_records_load_as_none(any_store: LedgerStore) -> None:
    assert any_store.load_staking("nobody") is None
    assert any_store.load_proposal("b" * 32) is None


def test_list_orders_newest_first_with_id_tiebreak(any_store: LedgerStore) -> None:
    any_store.save_proposal(_proposal("a" * 32, created_at=1_000))
    any_store.save_proposal(_proposal("b" * 32, created_at=1_000))
    any_store.save_proposal(_proposal("c" * 32, created_at=500, expires_at=900))

    assert [p.id for p in any_store.list_proposals()] == ["b" * 32, "a" * 32, "c" * 32]


def test_list_expired_active_ids(any_store: LedgerStore) -> None:
    any_store.save_proposal(_proposal("a" * 32, expires_at=2_000))
    any_store.save_proposal(_proposal("b" * 32, expires_at=3_000))
    done = any_store.save_proposal(_proposal("c" * 32, expires_at=1_500)).copy()
    done.status = STATUS_COMPLETED
    any_store.save_proposal(done)

    assert any_store.list_expired_active_proposal_ids(1_999) == []
    assert any_store.list_expired_active_proposal_ids(2_000) == ["a" * 32]
    assert any_store.list_expired_active_proposal_ids(10_000) == ["a" * 32, "b" * 32]


def test_invariants_block_bad_records(any_store: LedgerStore) -> None:
    with pytest.raises(InvariantViolation):
        any_store.save_staking(StakingRecord(wallet_address="w1", staked_amount=-1.0))

    bad = _proposal("a" * 32)
    bad.votes_for = 1  # no matching voter
    with pytest.raises(InvariantViolation):
        any_store.save_proposal(bad)

    assert any_store.load_staking("w1") is None
    assert any_store.load_proposal("a" * 32) is None


def test_completed_is_terminal(any_store: LedgerStore) -> None:
    p = any_store.save_proposal(_proposal("a" * 32))
    done = p.copy()
    done.status = STATUS_COMPLETED
    done = any_store.save_proposal(done)

    reopened = done.copy()
    reopened.status = STATUS_ACTIVE
    with pytest.raises(InvariantViolation):
        any_store.save_proposal(reopened)

    late_vote = done.copy()
    late_vote.votes_for = 1
    late_vote.voters = {"w1"}
    with pytest.raises(InvariantViolation):
        any_store.save_proposal(late_vote)

    assert any_store.load_proposal("a" * 32).status == STATUS_COMPLETED


def test_non_finite_amounts_have_their_own_reason(any_store: LedgerStore) -> None:
    with pytest.raises(InvariantViolation) as ei:
        any_store.save_staking(StakingRecord(wallet_address="w1", staked_amount=float("inf")))
    assert ei.value.reason == "staked_amount_not_finite"

    with pytest.raises(InvariantViolation) as ei:
        any_store.save_staking(StakingRecord(wallet_address="w1", staked_amount=1.0, rewards=float("nan")))
    assert ei.value.reason == "rewards_not_finite"

    with pytest.raises(InvariantViolation) as ei:
        any_store.save_staking(StakingRecord(wallet_address="w1", staked_amount=-1.0))
    assert ei.value.reason == "staked_amount_negative"
    assert any_store.load_staking("w1") is None
