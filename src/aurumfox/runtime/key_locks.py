# src/aurumfox/runtime/key_locks.py
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

from aurumfox.runtime.errors import Busy


@dataclass
class _Entry:
    lock: threading.Lock
    refs: int = 0


class KeyedLocks:
    """Per-key mutual exclusion with a bounded wait.

    One lock per key, created on demand and dropped once nobody holds or
    waits on it. The registry mutex is only held to look up and refcount the
    entry, never while waiting, so distinct keys never block each other.
    """

    def __init__(self, *, timeout_ms: int = 5_000) -> None:
        if int(timeout_ms) <= 0:
            raise ValueError(f"timeout_ms must be > 0; got {timeout_ms}")
        self._timeout_s = float(timeout_ms) / 1000.0
        self._mu = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._mu:
            ent = self._entries.get(key)
            if ent is None:
                ent = _Entry(lock=threading.Lock())
                self._entries[key] = ent
            ent.refs += 1
            return ent

    def _checkin(self, key: str, ent: _Entry) -> None:
        with self._mu:
            ent.refs -= 1
            if ent.refs <= 0 and self._entries.get(key) is ent:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for `key`, or raise Busy after the configured timeout."""
        k = str(key)
        ent = self._checkout(k)
        started = time.monotonic()
        try:
            if not ent.lock.acquire(timeout=self._timeout_s):
                waited_ms = int((time.monotonic() - started) * 1000)
                raise Busy("lock_timeout", {"key": k, "waited_ms": waited_ms})
            try:
                yield
            finally:
                ent.lock.release()
        finally:
            self._checkin(k, ent)

    def active_keys(self) -> int:
        with self._mu:
            return len(self._entries)


def staking_key(wallet_address: str) -> str:
    return f"wallet:{wallet_address}"


def proposal_key(proposal_id: str) -> str:
    return f"proposal:{proposal_id}"


__all__ = ["KeyedLocks", "proposal_key", "staking_key"]
