from __future__ import annotations

"""
Unit tests for the Rebuild Scheduler.

Verifies debounce coalescing under a fake clock, flush/cancel, failure
isolation and superseded generations when driven by a host timer.
"""

import logging
from typing import Any, Callable, List, Tuple

import pytest

from treesync.core.render.scheduler import RebuildScheduler


@pytest.fixture
def runs() -> List[int]:
    return []


@pytest.fixture
def scheduler(runs: List[int], fake_clock) -> RebuildScheduler:
    return RebuildScheduler(lambda: runs.append(1), delay_ms=50, clock=fake_clock)


def test_runs_once_window_elapses(scheduler: RebuildScheduler, fake_clock, runs: List[int]) -> None:
    scheduler.request()
    assert scheduler.pending
    assert scheduler.poll() is False

    fake_clock.advance(0.049)
    assert scheduler.poll() is False
    fake_clock.advance(0.002)
    assert scheduler.poll() is True
    assert runs == [1]
    assert not scheduler.pending
    assert scheduler.poll() is False


def test_burst_is_coalesced(scheduler: RebuildScheduler, fake_clock, runs: List[int]) -> None:
    for _ in range(5):
        scheduler.request()
        fake_clock.advance(0.02)
        scheduler.poll()
    assert runs == []

    fake_clock.advance(0.05)
    scheduler.poll()
    assert runs == [1]
    assert scheduler.generation == 5
    assert scheduler.runs == 1


def test_flush_and_cancel(scheduler: RebuildScheduler, fake_clock, runs: List[int]) -> None:
    assert scheduler.flush() is False

    scheduler.request()
    assert scheduler.flush() is True
    assert runs == [1]

    scheduler.request()
    scheduler.cancel()
    fake_clock.advance(1)
    assert scheduler.poll() is False
    assert runs == [1]


def test_zero_delay_runs_on_next_poll(runs: List[int], fake_clock) -> None:
    scheduler = RebuildScheduler(lambda: runs.append(1), delay_ms=0, clock=fake_clock)
    scheduler.request()
    assert scheduler.poll() is True


def test_negative_delay_rejected() -> None:
    with pytest.raises(ValueError):
        RebuildScheduler(lambda: None, delay_ms=-1)


def test_failing_callback_is_logged(fake_clock, caplog: pytest.LogCaptureFixture) -> None:
    def broken() -> None:
        raise RuntimeError("render failed")

    scheduler = RebuildScheduler(broken, delay_ms=0, clock=fake_clock)
    scheduler.request()
    with caplog.at_level(logging.ERROR, logger="treesync.core.render.scheduler"):
        assert scheduler.poll() is True
    assert "Scheduled rebuild failed" in caplog.text
    assert not scheduler.pending


def test_host_timer_supersedes_old_generations(scheduler: RebuildScheduler, runs: List[int]) -> None:
    scheduled: List[Tuple[int, Callable[[], None]]] = []
    cancelled: List[Any] = []

    def after(ms: int, fn: Callable[[], None]) -> int:
        scheduled.append((ms, fn))
        return len(scheduled)

    scheduler.bind_timer(after, cancelled.append)
    scheduler.request()
    scheduler.request()
    scheduler.request()

    assert [ms for ms, _ in scheduled] == [50, 50, 50]
    assert cancelled == [1, 2]

    scheduled[0][1]()
    assert runs == []
    scheduled[2][1]()
    assert runs == [1]
    scheduled[2][1]()
    assert runs == [1]
