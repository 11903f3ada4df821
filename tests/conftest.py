from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest


class ScriptedRNG:
    """Replays a fixed list of draws; fails loudly when a test under-scripts it."""

    def __init__(self, *values: float) -> None:
        self._values = list(values)
        self.calls = 0

    def next(self) -> float:
        if not self._values:
            raise AssertionError("scripted RNG exhausted")
        self.calls += 1
        return self._values.pop(0)

    @property
    def remaining(self) -> int:
        return len(self._values)


class ManualClock:
    def __init__(self) -> None:
        self.t = 0.0

    def now(self) -> float:
        return self.t


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualDriver:
    def __init__(self) -> None:
        self.callback: Callable[[], None] | None = None
        self.starts = 0
        self.cancels = 0
        self.timers: list[ManualTimer] = []

    def start(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.starts += 1

    def cancel(self) -> None:
        self.callback = None
        self.cancels += 1

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def fire_timers(self) -> None:
        for timer in list(self.timers):
            if not timer.cancelled and not timer.fired:
                timer.fired = True
                timer.callback()


@pytest.fixture
def scripted() -> type[ScriptedRNG]:
    return ScriptedRNG


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def driver() -> ManualDriver:
    return ManualDriver()


@pytest.fixture(autouse=True)
def _isolated_log_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("AMBIENTSEED_LOG_DIR", str(log_dir))
    return log_dir
