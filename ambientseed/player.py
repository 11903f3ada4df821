from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Callable

from .errors import PrematureExportError
from .logging_utils import log_exception
from .mirror import ExportResult, OfflineExporter
from .scheduler import Clock, LiveScheduler, SchedulerStatus, TickDriver, ToneRenderer
from .session import SessionSnapshot

_LOGGER = logging.getLogger("ambientseed.player")

ExportSink = Callable[[ExportResult], Any]


class Player:
    """Start, stop and export controls over one live scheduler."""

    def __init__(
        self,
        renderer: ToneRenderer,
        *,
        clock: Clock | None = None,
        driver: TickDriver | None = None,
        exporter: OfflineExporter | None = None,
        export_sink: ExportSink | None = None,
    ) -> None:
        self._scheduler = LiveScheduler(renderer, clock=clock, driver=driver)
        self._exporter = exporter or OfflineExporter()
        self._export_sink = export_sink

    @property
    def scheduler(self) -> LiveScheduler:
        return self._scheduler

    @property
    def status(self) -> SchedulerStatus:
        return self._scheduler.status

    @property
    def snapshot(self) -> SessionSnapshot | None:
        return self._scheduler.snapshot

    def start(
        self,
        base_frequency: Any = None,
        duration: Any = None,
        *,
        timestamp_ms: int | None = None,
    ) -> SessionSnapshot:
        return self._scheduler.start(base_frequency, duration, timestamp_ms=timestamp_ms)

    def stop(self) -> None:
        self._scheduler.stop()

    def trigger_export(self) -> Future[ExportResult]:
        """Mirror the current session's first minute on the export worker.

        Valid while playing and after stop; raises ``PrematureExportError``
        before the first session and ``ConcurrentExportError`` while a
        previous export is still rendering.
        """
        snapshot = self._scheduler.snapshot
        if snapshot is None:
            raise PrematureExportError("start a session before exporting")
        future = self._exporter.submit(snapshot)
        if self._export_sink is not None:
            future.add_done_callback(self._deliver)
        return future

    def _deliver(self, future: Future[ExportResult]) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        assert self._export_sink is not None
        try:
            self._export_sink(future.result())
        except Exception as exc:
            _LOGGER.warning("Export sink failed: %s", exc, exc_info=True)
            log_exception("ambientseed export sink", exc)

    def close(self) -> None:
        self._scheduler.stop()
        self._exporter.shutdown()
