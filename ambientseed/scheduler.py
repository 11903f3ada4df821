"""Real-time driver: wakes on a fixed tick and schedules notes ahead of the clock.

The scheduler owns one ``EngineState`` and one ``SeededRNG`` per session and
feeds every produced ``NoteEvent`` to a ``ToneRenderer``. All state
transitions (tick, stop, natural end) run under a single lock, so a stop
issued between two ticks halts note emission before the next one.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Protocol

from .config import SessionConfig
from .engine import EngineState, advance, mark_approaching_end
from .errors import InvariantViolationError, PlaybackError
from .events import NoteEvent
from .logging_utils import debug_enabled, log_exception
from .rng import SeededRNG
from .session import SessionSnapshot, open_session

_LOGGER = logging.getLogger("ambientseed.scheduler")

TICK_PERIOD_SECONDS = 0.1
LOOKAHEAD_SECONDS = 0.5
STOP_FADE_SECONDS = 0.25
NATURAL_FADE_SECONDS = 20.0
NATURAL_FINALIZE_SECONDS = 20.1


class SchedulerStatus(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    ENDING_NATURALLY = "ending_naturally"
    STOPPED = "stopped"


class Clock(Protocol):
    def now(self) -> float: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TickDriver(Protocol):
    def start(self, callback: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ToneRenderer(Protocol):
    """Turns note events into sound. A released renderer reopens on the next render."""

    def render(self, event: NoteEvent, *, mix_level: float) -> None: ...

    def fade_out(self, seconds: float, *, at: float) -> None: ...

    def release(self) -> None: ...


class MonotonicClock:
    def __init__(self) -> None:
        self._origin = time.monotonic()

    def now(self) -> float:
        return time.monotonic() - self._origin


class ThreadTickDriver:
    """Calls the tick callback on a daemon thread every ``period`` seconds."""

    def __init__(self, period: float = TICK_PERIOD_SECONDS) -> None:
        self._period = period
        self._stop: threading.Event | None = None
        self._thread: threading.Thread | None = None

    def start(self, callback: Callable[[], None]) -> None:
        self.cancel()
        stop = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(callback, stop),
            daemon=True,
            name="ambientseed-tick",
        )
        self._stop = stop
        self._thread = thread
        thread.start()

    def _run(self, callback: Callable[[], None], stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                callback()
            except Exception as exc:
                _LOGGER.warning("Scheduler tick failed: %s", exc, exc_info=debug_enabled())
            if stop.wait(self._period):
                break

    def cancel(self) -> None:
        # No join: cancel() runs under the scheduler lock, sometimes from the
        # tick thread itself. A tick already in flight re-checks status.
        if self._stop is not None:
            self._stop.set()
        self._stop = None
        self._thread = None

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class CollectingRenderer:
    """In-memory renderer; keeps every event it is handed."""

    def __init__(self, on_event: Callable[[NoteEvent, float], Any] | None = None) -> None:
        self.events: list[NoteEvent] = []
        self.mix_levels: list[float] = []
        self.fades: list[tuple[float, float]] = []
        self.releases = 0
        self._on_event = on_event

    def render(self, event: NoteEvent, *, mix_level: float) -> None:
        self.events.append(event)
        self.mix_levels.append(mix_level)
        if self._on_event is not None:
            self._on_event(event, mix_level)

    def fade_out(self, seconds: float, *, at: float) -> None:
        self.fades.append((at, seconds))

    def release(self) -> None:
        self.releases += 1


class LiveScheduler:
    def __init__(
        self,
        renderer: ToneRenderer,
        *,
        clock: Clock | None = None,
        driver: TickDriver | None = None,
        lookahead: float = LOOKAHEAD_SECONDS,
    ) -> None:
        self._renderer = renderer
        self._clock: Clock = clock or MonotonicClock()
        self._driver: TickDriver = driver or ThreadTickDriver()
        self._lookahead = lookahead
        self._lock = threading.RLock()
        self._status = SchedulerStatus.IDLE
        self._state: EngineState | None = None
        self._rng: SeededRNG | None = None
        self._snapshot: SessionSnapshot | None = None
        self._started_at = 0.0
        self._pending: TimerHandle | None = None
        self._failure: BaseException | None = None

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    @property
    def snapshot(self) -> SessionSnapshot | None:
        """Snapshot of the most recent session; survives stop."""
        return self._snapshot

    @property
    def state(self) -> EngineState | None:
        return self._state

    @property
    def failure(self) -> BaseException | None:
        """Error that aborted the most recent session, if any."""
        return self._failure

    @property
    def is_playing(self) -> bool:
        return self._status in (SchedulerStatus.PLAYING, SchedulerStatus.ENDING_NATURALLY)

    def elapsed(self) -> float:
        return self._clock.now() - self._started_at

    def start(
        self,
        base_frequency: Any = None,
        duration: Any = None,
        *,
        timestamp_ms: int | None = None,
    ) -> SessionSnapshot:
        """Stop any running session and begin a new one."""
        settings: dict[str, Any] = {}
        if base_frequency is not None:
            settings["base_frequency"] = base_frequency
        if duration is not None:
            settings["duration"] = duration
        config = SessionConfig(**settings)

        with self._lock:
            if self._status is not SchedulerStatus.IDLE:
                self._halt()
                self._renderer.release()
            snapshot, rng, state = open_session(config, timestamp_ms=timestamp_ms)
            self._snapshot = snapshot
            self._failure = None
            self._rng = rng
            self._state = state
            self._started_at = self._clock.now()
            self._status = SchedulerStatus.PLAYING
            self._driver.start(self.tick)
        return snapshot

    def tick(self) -> None:
        with self._lock:
            if self._status is not SchedulerStatus.PLAYING:
                return
            state, rng = self._state, self._rng
            assert state is not None and rng is not None
            now = self.elapsed()
            if not state.config.is_infinite and now >= state.config.total_seconds:
                if not state.approaching_end:
                    _LOGGER.info("Approaching the end at %.2fs", now)
                state = mark_approaching_end(state)
                self._state = state

            horizon = now + self._lookahead
            try:
                while state.next_time < horizon:
                    step = advance(state, rng)
                    state = step.state
                    self._state = state
                    for event in step.events:
                        self._renderer.render(event, mix_level=step.mix_level)
                    if state.ended:
                        self._begin_natural_end()
                        return
            except (InvariantViolationError, PlaybackError) as exc:
                # Fatal to this session only; the caller reads it back from `failure`.
                _LOGGER.error("Session aborted: %s", exc, exc_info=debug_enabled())
                log_exception("ambientseed live session", exc)
                self._failure = exc
                self._abort()

    def stop(self) -> None:
        """Fade out quickly and release the renderer; pre-empts a natural end."""
        with self._lock:
            if not self.is_playing:
                return
            self._halt()
            self._status = SchedulerStatus.STOPPED
            self._renderer.fade_out(STOP_FADE_SECONDS, at=self.elapsed())
            self._pending = self._driver.call_later(STOP_FADE_SECONDS, self._release_after_stop)
            _LOGGER.info("Session stopped")

    def _halt(self) -> None:
        self._driver.cancel()
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _release_after_stop(self) -> None:
        with self._lock:
            if self._status is not SchedulerStatus.STOPPED:
                return
            self._pending = None
            self._renderer.release()

    def _begin_natural_end(self) -> None:
        if self._status is not SchedulerStatus.PLAYING:
            return
        self._status = SchedulerStatus.ENDING_NATURALLY
        self._driver.cancel()
        self._renderer.fade_out(NATURAL_FADE_SECONDS, at=self.elapsed())
        self._pending = self._driver.call_later(NATURAL_FINALIZE_SECONDS, self._finalize)

    def _finalize(self) -> None:
        with self._lock:
            if self._status is not SchedulerStatus.ENDING_NATURALLY:
                return
            self._pending = None
            self._status = SchedulerStatus.STOPPED
            self._renderer.release()
            _LOGGER.info("Session finished")

    def _abort(self) -> None:
        self._halt()
        self._status = SchedulerStatus.STOPPED
        self._state = None
        self._rng = None
        self._renderer.fade_out(STOP_FADE_SECONDS, at=self.elapsed())
        self._renderer.release()
