# src/aurumfox/runtime/sqlite_db.py
from __future__ import annotations

import json
import logging
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from aurumfox.ledger.constants import STATUS_ACTIVE
from aurumfox.ledger.types import DaoProposal, StakingRecord
from aurumfox.runtime.errors import Conflict, StoreUnavailable
from aurumfox.runtime.state_invariants import check_proposal, check_staking_record, check_status_transition

Json = Dict[str, Any]

log = logging.getLogger("aurumfox.sqlite")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the AurumFox ledger.

    Design goals:
      - single durable DB file for staking records + proposals
      - cross-process safe (SQLite locks)
      - cross-thread safe by never sharing connections

    SQLite allows only one writer at a time. Under multi-process workloads,
    BEGIN IMMEDIATE can transiently fail with "database is locked", so
    write_tx() retries it within a bounded deadline.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """PRAGMA synchronous value.

        Defaults:
          - prod -> FULL
          - dev  -> NORMAL

        Override with AFOX_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("AFOX_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("AFOX_SQLITE_SYNCHRONOUS") or default).strip().upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("AFOX_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # BEGIN/COMMIT are issued explicitly
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        # Fail closed if WAL cannot be enabled; rollback-journal mode serializes readers too.
        allow_non_wal = (os.environ.get("AFOX_SQLITE_ALLOW_NON_WAL") or "").strip() in {"1", "true", "TRUE"}
        try:
            row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
            mode = str(row[0]).strip().lower() if row is not None else ""
            if mode and mode != "wal" and not allow_non_wal:
                raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")
        except Exception:
            if not allow_non_wal:
                con.close()
                raise

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute("PRAGMA temp_store=MEMORY;")

        wal_ckpt = max(1, _env_int("AFOX_SQLITE_WAL_AUTOCHECKPOINT", 1000))
        con.execute(f"PRAGMA wal_autocheckpoint={wal_ckpt};")

        jsl = max(0, _env_int("AFOX_SQLITE_JOURNAL_SIZE_LIMIT", 64 * 1024 * 1024))
        con.execute(f"PRAGMA journal_size_limit={jsl};")

        # Negative means KiB.
        cache_kib = max(0, _env_int("AFOX_SQLITE_CACHE_SIZE_KIB", 16 * 1024))
        con.execute(f"PRAGMA cache_size={-cache_kib};")

        busy_ms = max(0, _env_int("AFOX_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")

        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS staking_records (
                  wallet_address TEXT PRIMARY KEY,
                  staked_amount REAL NOT NULL,
                  rewards REAL NOT NULL,
                  last_claimed_ms INTEGER NOT NULL,
                  last_staked_or_unstaked_ms INTEGER NOT NULL,
                  created_at_ms INTEGER NOT NULL,
                  updated_at_ms INTEGER NOT NULL,
                  version INTEGER NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS dao_proposals (
                  id TEXT PRIMARY KEY,
                  title TEXT NOT NULL,
                  description TEXT NOT NULL,
                  creator_wallet TEXT NOT NULL,
                  created_at_ms INTEGER NOT NULL,
                  expires_at_ms INTEGER NOT NULL,
                  votes_for INTEGER NOT NULL,
                  votes_against INTEGER NOT NULL,
                  voters_json TEXT NOT NULL,
                  status TEXT NOT NULL,
                  updated_at_ms INTEGER NOT NULL,
                  version INTEGER NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_dao_proposals_created ON dao_proposals(created_at_ms);")
            con.execute(
                "CREATE INDEX IF NOT EXISTS idx_dao_proposals_status_expiry ON dao_proposals(status, expires_at_ms);"
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except Exception:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            try:
                con.close()
            except Exception:
                pass

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg) or ("locked" in msg and "database" in msg)

    @staticmethod
    def _backoff_s(attempt: int, base_s: float, max_s: float) -> float:
        s = min(max_s, base_s * (2.0 ** min(attempt, 8)))
        return s * (0.5 + random.random())

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE (and COMMIT) until a deadline
          - exponential backoff with jitter
          - then raise if the lock cannot be acquired within the deadline
        """
        deadline_ms = max(250, _env_int("AFOX_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("AFOX_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("AFOX_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    time.sleep(self._backoff_s(attempt, base_sleep, max_sleep))
                    attempt += 1

            try:
                yield con

                c_attempt = 0
                while True:
                    try:
                        con.execute("COMMIT;")
                        break
                    except sqlite3.OperationalError as e:
                        if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                            raise
                        time.sleep(self._backoff_s(c_attempt, base_sleep, max_sleep))
                        c_attempt += 1
            except Exception:
                try:
                    con.execute("ROLLBACK;")
                except Exception:
                    pass
                raise


def _staking_from_row(row: sqlite3.Row) -> StakingRecord:
    return StakingRecord(
        wallet_address=str(row["wallet_address"]),
        staked_amount=float(row["staked_amount"]),
        rewards=float(row["rewards"]),
        last_claimed=int(row["last_claimed_ms"]),
        last_staked_or_unstaked=int(row["last_staked_or_unstaked_ms"]),
        created_at=int(row["created_at_ms"]),
        updated_at=int(row["updated_at_ms"]),
        version=int(row["version"]),
    )


def _proposal_from_row(row: sqlite3.Row) -> DaoProposal:
    voters = json.loads(str(row["voters_json"]))
    if not isinstance(voters, list):
        raise ValueError("voters_json is not a JSON list")
    return DaoProposal.from_dict(
        {
            "id": row["id"],
            "title": row["title"],
            "description": row["description"],
            "creator_wallet": row["creator_wallet"],
            "created_at": row["created_at_ms"],
            "expires_at": row["expires_at_ms"],
            "votes_for": row["votes_for"],
            "votes_against": row["votes_against"],
            "voters": voters,
            "status": row["status"],
            "updated_at": row["updated_at_ms"],
            "version": row["version"],
        }
    )


_PROPOSAL_COLS = (
    "id, title, description, creator_wallet, created_at_ms, expires_at_ms, "
    "votes_for, votes_against, voters_json, status, updated_at_ms, version"
)


class SqliteLedgerStore:
    """Staking records and DAO proposals persisted in SQLite.

    Saves are version-checked inside a single write transaction: read the
    stored version, compare with the caller's, then INSERT (version 0) or
    UPDATE ... WHERE version=?. A mismatch raises Conflict and writes
    nothing. Driver failures surface as StoreUnavailable.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @contextmanager
    def _guard(self, op: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            log.error("sqlite op failed op=%s err=%s", op, e)
            raise StoreUnavailable("sqlite_error", {"op": op, "error": str(e)}) from e

    def load_staking(self, wallet_address: str) -> Optional[StakingRecord]:
        with self._guard("load_staking"), self._db.connection() as con:
            row = con.execute(
                "SELECT * FROM staking_records WHERE wallet_address=?;",
                (str(wallet_address),),
            ).fetchone()
        return _staking_from_row(row) if row is not None else None

    def save_staking(self, record: StakingRecord) -> StakingRecord:
        check_staking_record(record)
        expected = int(record.version)
        nxt = expected + 1
        with self._guard("save_staking"), self._db.write_tx() as con:
            row = con.execute(
                "SELECT version FROM staking_records WHERE wallet_address=?;",
                (record.wallet_address,),
            ).fetchone()
            have = int(row["version"]) if row is not None else 0
            if have != expected:
                raise Conflict(
                    "stale_staking_record",
                    {"wallet_address": record.wallet_address, "expected": expected, "have": have},
                )
            params = (
                float(record.staked_amount),
                float(record.rewards),
                int(record.last_claimed),
                int(record.last_staked_or_unstaked),
                int(record.updated_at),
                nxt,
            )
            if row is None:
                con.execute(
                    """
                    INSERT INTO staking_records(
                      staked_amount, rewards, last_claimed_ms, last_staked_or_unstaked_ms,
                      updated_at_ms, version, wallet_address, created_at_ms
                    ) VALUES(?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    params + (record.wallet_address, int(record.created_at)),
                )
            else:
                con.execute(
                    """
                    UPDATE staking_records SET
                      staked_amount=?, rewards=?, last_claimed_ms=?, last_staked_or_unstaked_ms=?,
                      updated_at_ms=?, version=?
                    WHERE wallet_address=? AND version=?;
                    """,
                    params + (record.wallet_address, expected),
                )
        out = record.copy()
        out.version = nxt
        return out

    def load_proposal(self, proposal_id: str) -> Optional[DaoProposal]:
        with self._guard("load_proposal"), self._db.connection() as con:
            row = con.execute(
                f"SELECT {_PROPOSAL_COLS} FROM dao_proposals WHERE id=?;",
                (str(proposal_id),),
            ).fetchone()
        return _proposal_from_row(row) if row is not None else None

    def save_proposal(self, record: DaoProposal) -> DaoProposal:
        check_proposal(record)
        expected = int(record.version)
        nxt = expected + 1
        voters_json = _canon_json(sorted(record.voters))
        with self._guard("save_proposal"), self._db.write_tx() as con:
            row = con.execute(f"SELECT {_PROPOSAL_COLS} FROM dao_proposals WHERE id=?;", (record.id,)).fetchone()
            have = int(row["version"]) if row is not None else 0
            if have != expected:
                raise Conflict(
                    "stale_proposal",
                    {"proposal_id": record.id, "expected": expected, "have": have},
                )
            if row is None:
                con.execute(
                    f"INSERT INTO dao_proposals({_PROPOSAL_COLS}) VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        record.id,
                        record.title,
                        record.description,
                        record.creator_wallet,
                        int(record.created_at),
                        int(record.expires_at),
                        int(record.votes_for),
                        int(record.votes_against),
                        voters_json,
                        record.status,
                        int(record.updated_at),
                        nxt,
                    ),
                )
            else:
                check_status_transition(_proposal_from_row(row), record)
                con.execute(
                    """
                    UPDATE dao_proposals SET
                      votes_for=?, votes_against=?, voters_json=?, status=?, updated_at_ms=?, version=?
                    WHERE id=? AND version=?;
                    """,
                    (
                        int(record.votes_for),
                        int(record.votes_against),
                        voters_json,
                        record.status,
                        int(record.updated_at),
                        nxt,
                        record.id,
                        expected,
                    ),
                )
        out = record.copy()
        out.version = nxt
        return out

    def list_proposals(self) -> List[DaoProposal]:
        with self._guard("list_proposals"), self._db.connection() as con:
            rows = con.execute(
                f"SELECT {_PROPOSAL_COLS} FROM dao_proposals ORDER BY created_at_ms DESC, id DESC;"
            ).fetchall()
        return [_proposal_from_row(r) for r in rows]

    def list_expired_active_proposal_ids(self, now_ms: int) -> List[str]:
        with self._guard("list_expired_active_proposal_ids"), self._db.connection() as con:
            rows = con.execute(
                "SELECT id FROM dao_proposals WHERE status=? AND expires_at_ms<=? ORDER BY id;",
                (STATUS_ACTIVE, int(now_ms)),
            ).fetchall()
        return [str(r["id"]) for r in rows]

    def ping(self) -> bool:
        try:
            with self._db.connection() as con:
                con.execute("SELECT 1;").fetchone()
            return True
        except (sqlite3.Error, RuntimeError) as e:
            log.warning("sqlite ping failed path=%s err=%s", self._db.path, e)
            return False


__all__ = ["SqliteDB", "SqliteLedgerStore"]
