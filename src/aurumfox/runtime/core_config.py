# src/aurumfox/runtime/core_config.py
from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from aurumfox.ledger.constants import STAKING_APR, VOTING_WINDOW_MS

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None or (isinstance(v, str) and not v.strip()):
        return int(default)
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_float(v: Any, default: float) -> float:
    if v is None or (isinstance(v, str) and not v.strip()):
        return float(default)
    try:
        return float(v)
    except Exception:
        return float(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class CoreConfig:
    mode: str  # "dev" | "testnet" | "prod"

    # Empty db_path means the in-memory store.
    db_path: str

    staking_apr: float
    voting_window_ms: int

    lock_timeout_ms: int
    retry_attempts: int
    retry_backoff_base_ms: int
    retry_backoff_max_ms: int

    sweep_interval_ms: int
    require_signatures: bool

    api_host: str
    api_port: int
    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_core_config(cfg: CoreConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    apr = float(cfg.staking_apr)
    if not math.isfinite(apr) or apr < 0.0 or apr >= 1.0:
        raise ValueError(f"staking_apr must be in [0, 1); got: {cfg.staking_apr}")

    if int(cfg.voting_window_ms) <= 0:
        raise ValueError(f"voting_window_ms must be > 0; got: {cfg.voting_window_ms}")

    if int(cfg.lock_timeout_ms) <= 0:
        raise ValueError(f"lock_timeout_ms must be > 0; got: {cfg.lock_timeout_ms}")

    if int(cfg.retry_attempts) < 1:
        raise ValueError(f"retry_attempts must be >= 1; got: {cfg.retry_attempts}")

    if int(cfg.retry_backoff_base_ms) < 0 or int(cfg.retry_backoff_max_ms) < int(cfg.retry_backoff_base_ms):
        raise ValueError(
            "retry backoff must satisfy 0 <= base <= max; "
            f"got base={cfg.retry_backoff_base_ms} max={cfg.retry_backoff_max_ms}"
        )

    if int(cfg.sweep_interval_ms) < 250:
        # Too-low intervals turn the sweep into a busy loop.
        raise ValueError(f"sweep_interval_ms must be >= 250; got: {cfg.sweep_interval_ms}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_ALLOWED_LOG_LEVELS)}; got: {cfg.log_level!r}")


def default_core_config() -> CoreConfig:
    return CoreConfig(
        mode="prod",
        db_path="./data/aurumfox.db",
        staking_apr=STAKING_APR,
        voting_window_ms=VOTING_WINDOW_MS,
        lock_timeout_ms=5_000,
        retry_attempts=5,
        retry_backoff_base_ms=10,
        retry_backoff_max_ms=250,
        sweep_interval_ms=60_000,
        require_signatures=False,
        api_host="127.0.0.1",
        api_port=8000,
        log_level="INFO",
    )


def _overlay(base: CoreConfig, raw: Mapping[str, Any]) -> CoreConfig:
    return CoreConfig(
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        db_path=str(raw["db_path"]) if raw.get("db_path") is not None else base.db_path,
        staking_apr=_as_float(raw.get("staking_apr"), base.staking_apr),
        voting_window_ms=_as_int(raw.get("voting_window_ms"), base.voting_window_ms),
        lock_timeout_ms=_as_int(raw.get("lock_timeout_ms"), base.lock_timeout_ms),
        retry_attempts=_as_int(raw.get("retry_attempts"), base.retry_attempts),
        retry_backoff_base_ms=_as_int(raw.get("retry_backoff_base_ms"), base.retry_backoff_base_ms),
        retry_backoff_max_ms=_as_int(raw.get("retry_backoff_max_ms"), base.retry_backoff_max_ms),
        sweep_interval_ms=_as_int(raw.get("sweep_interval_ms"), base.sweep_interval_ms),
        require_signatures=_as_bool(raw.get("require_signatures"), base.require_signatures),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).strip().upper(),
    )


def read_core_config_file(path: str) -> CoreConfig:
    """Read a JSON or YAML (.yaml/.yml) config file over the defaults."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("core config must be a mapping")

    cfg = _overlay(default_core_config(), raw)
    validate_core_config(cfg)
    return cfg


_ENV_KEYS = {
    "mode": "AFOX_MODE",
    "db_path": "AFOX_DB_PATH",
    "staking_apr": "AFOX_STAKING_APR",
    "voting_window_ms": "AFOX_VOTING_WINDOW_MS",
    "lock_timeout_ms": "AFOX_LOCK_TIMEOUT_MS",
    "retry_attempts": "AFOX_RETRY_ATTEMPTS",
    "retry_backoff_base_ms": "AFOX_RETRY_BACKOFF_BASE_MS",
    "retry_backoff_max_ms": "AFOX_RETRY_BACKOFF_MAX_MS",
    "sweep_interval_ms": "AFOX_SWEEP_INTERVAL_MS",
    "require_signatures": "AFOX_REQUIRE_SIGNATURES",
    "api_host": "AFOX_API_HOST",
    "api_port": "AFOX_API_PORT",
    "log_level": "AFOX_LOG_LEVEL",
}


def core_config_from_env(env: Optional[Mapping[str, str]] = None) -> CoreConfig:
    e = os.environ if env is None else env
    raw: Json = {}
    for field, key in _ENV_KEYS.items():
        if key in e:
            raw[field] = e[key]
    cfg = _overlay(default_core_config(), raw)
    validate_core_config(cfg)
    return cfg


def load_core_config(*, config_path: Optional[str] = None) -> CoreConfig:
    p = config_path or os.environ.get("AFOX_CONFIG_PATH")
    if p:
        return read_core_config_file(p)
    return core_config_from_env()


def with_overrides(cfg: CoreConfig, **changes: Any) -> CoreConfig:
    out = replace(cfg, **changes)
    validate_core_config(out)
    return out


__all__ = [
    "CoreConfig",
    "core_config_from_env",
    "default_core_config",
    "load_core_config",
    "read_core_config_file",
    "validate_core_config",
    "with_overrides",
]
