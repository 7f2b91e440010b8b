from __future__ import annotations

import threading
import time

import pytest

from aurumfox.runtime.errors import Busy
from aurumfox.runtime.key_locks import KeyedLocks, proposal_key, staking_key


def test_same_key_times_out_with_busy() -> None:
    locks = KeyedLocks(timeout_ms=50)
    held = threading.Event()
    release = threading.Event()

    def _holder() -> None:
        with locks.hold("k"):
            held.set()
            release.wait(5)

    t = threading.Thread(target=_holder)
    t.start()
    assert held.wait(5)
    try:
        with pytest.raises(Busy) as ei:
            with locks.hold("k"):
                pass
        assert ei.value.details["key"] == "k"
        assert ei.value.transient is True
    finally:
        release.set()
        t.join(5)


def test_distinct_keys_do_not_block() -> None:
    locks = KeyedLocks(timeout_ms=50)
    with locks.hold("a"):
        started = time.monotonic()
        with locks.hold("b"):
            pass
        assert time.monotonic() - started < 0.05


def test_entries_are_dropped_after_release() -> None:
    locks = KeyedLocks()
    with locks.hold("a"):
        with locks.hold("b"):
            assert locks.active_keys() == 2
    assert locks.active_keys() == 0


def test_lock_released_on_exception() -> None:
    locks = KeyedLocks(timeout_ms=50)
    with pytest.raises(RuntimeError):
        with locks.hold("k"):
            raise RuntimeError("boom")
    with locks.hold("k"):
        pass


def test_key_namespaces_do_not_collide() -> None:
    assert staking_key("x") != proposal_key("x")


def test_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        KeyedLocks(timeout_ms=0)
