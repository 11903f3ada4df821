from __future__ import annotations

import math

import pytest

from ambientseed.density import (
    DENSITY_MAX,
    DENSITY_MIN,
    DensityState,
    DriftParams,
    map_range,
    mix_level_for,
)
from ambientseed.rng import SeededRNG


def test_draw_order_and_ranges(scripted) -> None:
    low = DensityState.draw(scripted(0.0, 0.0, 0.0))
    assert (low.base, low.lfo_rate, low.lfo_phase) == (0.05, 0.00045, 0.0)
    assert low.run == low.target == low.base

    mid = DensityState.draw(scripted(0.5, 0.5, 0.5))
    assert mid.base == pytest.approx(0.2375)
    assert mid.lfo_rate == pytest.approx(0.000725)
    assert mid.lfo_phase == pytest.approx(math.pi)


def test_mix_level_map() -> None:
    assert mix_level_for(DENSITY_MIN) == pytest.approx(1.08)
    assert mix_level_for(DENSITY_MAX) == pytest.approx(0.74)
    assert map_range(5.0, 0.0, 10.0, 0.0, 1.0) == 0.5


def test_update_smooths_toward_the_lfo_target() -> None:
    density = DensityState(base=0.2, lfo_rate=0.001, lfo_phase=math.pi / 2, target=0.2, run=0.2)
    mix = density.update(0.0)
    assert density.target == pytest.approx(0.23)
    assert density.run == pytest.approx(0.2 + 0.03 * 0.005)
    assert mix == pytest.approx(mix_level_for(density.run))


def test_run_density_stays_bounded() -> None:
    rng = SeededRNG(99)
    for _ in range(20):
        density = DensityState.draw(rng)
        for step in range(0, 100_000, 37):
            density.update(float(step))
            assert DENSITY_MIN <= density.run <= DENSITY_MAX


def test_note_duration_and_spacing(scripted) -> None:
    density = DensityState(base=0.25, lfo_rate=0.001, lfo_phase=0.0, target=0.25, run=0.25)
    assert density.note_duration() == pytest.approx(10.0)
    assert density.note_spacing(scripted(0.5)) == pytest.approx(4.0)
    assert density.note_spacing(scripted(0.0)) == pytest.approx(3.8)


def test_drift_ratio_is_a_few_cents(scripted) -> None:
    drift = DriftParams.draw(scripted(0.5, 0.5, 0.0))
    assert drift.rate_hz == pytest.approx(0.006)
    assert drift.cents == pytest.approx(6.5)
    assert drift.cents_at(0.0) == 0.0
    assert drift.ratio_at(0.0) == 1.0
    quarter = 1 / (4 * drift.rate_hz)
    assert drift.cents_at(quarter) == pytest.approx(6.5)
    assert drift.ratio_at(quarter) == pytest.approx(2 ** (6.5 / 1200))
