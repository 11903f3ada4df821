"""Offline replay of a session's opening minute for export.

The mirror owns a separate RNG restored from the snapshot's start state and
steps the same ``advance`` function on simulated time only, so an export
never perturbs the live session's random stream.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .config import SessionConfig
from .engine import advance, begin_session
from .errors import ConcurrentExportError, InvariantViolationError
from .events import NoteEvent
from .rng import SeededRNG
from .session import SessionSnapshot, open_session

_LOGGER = logging.getLogger("ambientseed.mirror")

EXPORT_WINDOW_SECONDS = 60.0
EXPORT_BUFFER_SECONDS = 75.0

__all__ = [
    "EXPORT_BUFFER_SECONDS",
    "EXPORT_WINDOW_SECONDS",
    "ExportResult",
    "OfflineExporter",
    "SessionSnapshot",
    "render_session",
    "snapshot_session",
]


class ExportResult(BaseModel):
    snapshot: SessionSnapshot
    events: tuple[NoteEvent, ...]
    mix_levels: tuple[float, ...]
    window_seconds: float = EXPORT_WINDOW_SECONDS
    # Extra room after the window so the last notes can ring out.
    buffer_seconds: float = Field(default=EXPORT_BUFFER_SECONDS, gt=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=indent)


def snapshot_session(
    config: SessionConfig,
    *,
    timestamp_ms: int | None = None,
) -> SessionSnapshot:
    """Derive a session snapshot without starting any live playback."""
    snapshot, _, _ = open_session(config, timestamp_ms=timestamp_ms)
    return snapshot


def render_session(
    snapshot: SessionSnapshot,
    *,
    window: float = EXPORT_WINDOW_SECONDS,
    buffer_seconds: float = EXPORT_BUFFER_SECONDS,
) -> ExportResult:
    """Replay every note whose start time falls inside ``window`` seconds."""
    rng = SeededRNG(snapshot.seed)
    rng.set_state(snapshot.start_state)
    state = begin_session(snapshot.config, rng)
    if not snapshot.matches(state):
        raise InvariantViolationError(
            f"session setup replay diverged from snapshot for seed {snapshot.seed}"
        )

    events: list[NoteEvent] = []
    mix_levels: list[float] = []
    while state.next_time < window and not state.ended:
        step = advance(state, rng)
        state = step.state
        for event in step.events:
            events.append(event)
            mix_levels.append(step.mix_level)

    _LOGGER.info(
        "Mirrored %d notes over %.1fs for seed %d", len(events), window, snapshot.seed
    )
    return ExportResult(
        snapshot=snapshot,
        events=tuple(events),
        mix_levels=tuple(mix_levels),
        window_seconds=window,
        buffer_seconds=max(buffer_seconds, window),
    )


class OfflineExporter:
    """Runs mirror renders on one worker thread, one at a time."""

    def __init__(self, *, window: float = EXPORT_WINDOW_SECONDS) -> None:
        self._window = window
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ambientseed-export")
        self._lock = threading.Lock()
        self._in_flight: Future[ExportResult] | None = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._in_flight is not None and not self._in_flight.done()

    def submit(self, snapshot: SessionSnapshot) -> Future[ExportResult]:
        with self._lock:
            if self._in_flight is not None and not self._in_flight.done():
                raise ConcurrentExportError("an export is already rendering")
            future = self._executor.submit(render_session, snapshot, window=self._window)
            self._in_flight = future
        future.add_done_callback(self._log_outcome)
        return future

    async def arender(self, snapshot: SessionSnapshot) -> ExportResult:
        return await asyncio.wrap_future(self.submit(snapshot))

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "OfflineExporter":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    @staticmethod
    def _log_outcome(future: Future[ExportResult]) -> None:
        if future.cancelled():
            _LOGGER.info("Export cancelled")
            return
        exc = future.exception()
        if exc is not None:
            _LOGGER.warning("Export failed: %s", exc)
