from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "aurumfox" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

import base58  # noqa: E402

from aurumfox.runtime import metrics  # noqa: E402
from aurumfox.runtime.core_config import default_core_config, with_overrides  # noqa: E402
from aurumfox.runtime.executor import AurumExecutor  # noqa: E402
from aurumfox.runtime.store import MemoryLedgerStore  # noqa: E402

T0_MS = 1_700_000_000_000
MS_PER_DAY = 86_400_000


class FakeClock:
    """Injectable epoch-ms clock."""

    def __init__(self, start_ms: int = T0_MS) -> None:
        self.now = int(start_ms)

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += int(ms)
        return self.now

    def advance_days(self, days: float) -> int:
        return self.advance(int(days * MS_PER_DAY))


def make_wallet(n: int) -> str:
    """Deterministic, syntactically valid Solana address (32 bytes of `n`)."""
    return base58.b58encode(bytes([n % 255 + 1]) * 32).decode("ascii")


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch):
    for k in (
        "AFOX_CONFIG_PATH",
        "AFOX_DB_PATH",
        "AFOX_DAO_SWEEP_AUTOSTART",
        "AFOX_REQUIRE_SIGNATURES",
        "AFOX_METRICS_ENABLED",
        "AFOX_CORS_ORIGINS",
        "AFOX_MAX_REQUEST_BYTES",
        "AFOX_SIZE_LIMIT_DISABLE",
    ):
        monkeypatch.delenv(k, raising=False)
    monkeypatch.setenv("AFOX_MODE", "dev")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wallet():
    return make_wallet


@pytest.fixture
def store() -> MemoryLedgerStore:
    return MemoryLedgerStore()


@pytest.fixture
def executor(store: MemoryLedgerStore, clock: FakeClock) -> AurumExecutor:
    cfg = with_overrides(default_core_config(), mode="dev", db_path="", retry_backoff_base_ms=1, retry_backoff_max_ms=5)
    return AurumExecutor(store=store, cfg=cfg, clock=clock)
