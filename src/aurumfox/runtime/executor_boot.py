# src/aurumfox/runtime/executor_boot.py

from __future__ import annotations

from typing import Optional

from aurumfox.env import load_dotenv_if_present
from aurumfox.runtime.core_config import CoreConfig, load_core_config
from aurumfox.runtime.executor import AurumExecutor
from aurumfox.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from aurumfox.runtime.store import LedgerStore, MemoryLedgerStore


def build_store(cfg: CoreConfig) -> LedgerStore:
    """SQLite when db_path is set; the in-memory store when it is empty or ':memory:'."""
    path = str(cfg.db_path or "").strip()
    if not path or path == ":memory:":
        return MemoryLedgerStore()
    return SqliteLedgerStore(db=SqliteDB(path=path))


def build_executor(cfg: Optional[CoreConfig] = None) -> AurumExecutor:
    """
    Build an AurumExecutor from an explicit config or, if omitted, from
    AFOX_CONFIG_PATH / AFOX_* environment variables (after loading .env).

    `aurumfox.api.app` calls this with no args in production.
    """
    if cfg is None:
        load_dotenv_if_present()
        cfg = load_core_config()
    return AurumExecutor(store=build_store(cfg), cfg=cfg)
