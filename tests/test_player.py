from __future__ import annotations

import threading

import pytest

from ambientseed.errors import PrematureExportError
from ambientseed.mirror import ExportResult, OfflineExporter
from ambientseed.player import Player
from ambientseed.scheduler import CollectingRenderer, SchedulerStatus


def test_export_before_any_session_is_premature(clock, driver) -> None:
    player = Player(CollectingRenderer(), clock=clock, driver=driver)
    try:
        with pytest.raises(PrematureExportError):
            player.trigger_export()
    finally:
        player.close()


def test_export_is_delivered_to_the_sink(clock, driver) -> None:
    delivered: list[ExportResult] = []
    done = threading.Event()

    def sink(result: ExportResult) -> None:
        delivered.append(result)
        done.set()

    player = Player(CollectingRenderer(), clock=clock, driver=driver, export_sink=sink)
    try:
        snapshot = player.start(110.0, "300", timestamp_ms=1000)
        player.scheduler.tick()
        future = player.trigger_export()
        result = future.result(timeout=10)
        assert done.wait(timeout=5)
    finally:
        player.close()

    assert delivered == [result]
    assert result.snapshot == snapshot
    assert player.status is SchedulerStatus.STOPPED


def test_export_still_works_after_stop(clock, driver) -> None:
    renderer = CollectingRenderer()
    player = Player(renderer, clock=clock, driver=driver, exporter=OfflineExporter(window=30.0))
    try:
        snapshot = player.start(timestamp_ms=1000)
        for tick in range(50):
            clock.t = tick * 0.1
            player.scheduler.tick()
        player.stop()
        result = player.trigger_export().result(timeout=10)
    finally:
        player.close()

    assert player.snapshot == snapshot
    assert result.window_seconds == 30.0
    assert result.events[: len(renderer.events)] == tuple(renderer.events)


def test_failing_sink_does_not_break_the_export(clock, driver) -> None:
    called = threading.Event()

    def sink(result: ExportResult) -> None:
        called.set()
        raise OSError("disk full")

    player = Player(CollectingRenderer(), clock=clock, driver=driver, export_sink=sink)
    try:
        player.start(timestamp_ms=1000)
        result = player.trigger_export().result(timeout=10)
        assert called.wait(timeout=5)
    finally:
        player.close()
    assert result.events
