from __future__ import annotations

import multiprocessing as mp
import sqlite3
from pathlib import Path

import pytest

from aurumfox.runtime.core_config import default_core_config, with_overrides
from aurumfox.runtime.errors import StoreUnavailable
from aurumfox.runtime.executor import AurumExecutor
from aurumfox.runtime.executor_boot import build_store
from aurumfox.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from conftest import make_wallet


def _pragma(con: sqlite3.Connection, name: str) -> int | str:
    row = con.execute(f"PRAGMA {name};").fetchone()
    if row is None:
        raise AssertionError(f"missing pragma: {name}")
    return row[0]


def test_sqlite_operational_pragmas_are_applied(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AFOX_MODE", "prod")
    monkeypatch.delenv("AFOX_SQLITE_SYNCHRONOUS", raising=False)
    monkeypatch.setenv("AFOX_SQLITE_BUSY_TIMEOUT_MS", "1234")
    monkeypatch.setenv("AFOX_SQLITE_WAL_AUTOCHECKPOINT", "777")
    monkeypatch.setenv("AFOX_SQLITE_CACHE_SIZE_KIB", "4096")

    db = SqliteDB(path=str(tmp_path / "afox.db"))
    db.init_schema()

    with db.connection() as con:
        assert str(_pragma(con, "journal_mode")).lower() == "wal"
        # FULL is the prod default.
        assert int(_pragma(con, "synchronous")) == 2
        assert int(_pragma(con, "foreign_keys")) == 1
        assert int(_pragma(con, "busy_timeout")) == 1234
        assert int(_pragma(con, "wal_autocheckpoint")) == 777
        assert int(_pragma(con, "cache_size")) == -4096


def test_dev_mode_uses_normal_sync(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AFOX_MODE", "dev")
    monkeypatch.delenv("AFOX_SQLITE_SYNCHRONOUS", raising=False)
    db = SqliteDB(path=str(tmp_path / "afox.db"))
    with db.connection() as con:
        assert int(_pragma(con, "synchronous")) == 1


def test_schema_tables_and_version(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "afox.db"))
    db.init_schema()
    db.init_schema()  # idempotent

    with db.connection() as con:
        names = {r["name"] for r in con.execute("SELECT name FROM sqlite_master WHERE type IN ('table','index');")}
        row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()

    assert {"staking_records", "dao_proposals", "meta"} <= names
    assert {"idx_dao_proposals_created", "idx_dao_proposals_status_expiry"} <= names
    assert int(row["value"]) == SqliteDB.SCHEMA_VERSION


def test_schema_version_mismatch_refuses_to_start(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "afox.db"))
    db.init_schema()
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError, match="schema_version mismatch"):
        SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "afox.db")))


def test_driver_failures_surface_as_store_unavailable(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "afox.db"))
    store = SqliteLedgerStore(db=db)

    # A directory cannot be opened as a database file.
    db.path = str(tmp_path)
    with pytest.raises(StoreUnavailable):
        store.load_staking(make_wallet(1))
    assert store.ping() is False


def test_build_store_picks_backend(tmp_path: Path) -> None:
    cfg = default_core_config()
    assert type(build_store(with_overrides(cfg, db_path=""))).__name__ == "MemoryLedgerStore"
    assert type(build_store(with_overrides(cfg, db_path=":memory:"))).__name__ == "MemoryLedgerStore"
    assert isinstance(build_store(with_overrides(cfg, db_path=str(tmp_path / "x.db"))), SqliteLedgerStore)


def _stake_worker(db_path: str, wallet: str, n: int) -> None:
    cfg = with_overrides(
        default_core_config(),
        mode="dev",
        db_path=db_path,
        retry_attempts=500,
        retry_backoff_base_ms=1,
        retry_backoff_max_ms=20,
    )
    ex = AurumExecutor(store=build_store(cfg), cfg=cfg)
    for _ in range(int(n)):
        ex.stake(wallet, 1)


def test_stake_is_cross_process_safe(tmp_path: Path) -> None:
    """Several processes stake 1 into the same wallet; no increment is lost.

    In-process locks do not span processes, so this exercises the versioned
    save plus executor retry on Conflict.
    """
    db_path = str(tmp_path / "afox_mp.db")
    SqliteLedgerStore(db=SqliteDB(path=db_path))
    w = make_wallet(42)

    workers = 4
    per = 25
    procs: list[mp.Process] = []
    for _ in range(workers):
        pr = mp.Process(target=_stake_worker, args=(db_path, w, per))
        pr.start()
        procs.append(pr)

    for pr in procs:
        pr.join(60)
        assert pr.exitcode == 0

    rec = SqliteLedgerStore(db=SqliteDB(path=db_path)).load_staking(w)
    assert rec is not None
    assert rec.staked_amount == float(workers * per)
    assert rec.version == workers * per
