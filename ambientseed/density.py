from __future__ import annotations

import math
from dataclasses import dataclass, replace

from .rng import RandomSource

DENSITY_MIN = 0.05
DENSITY_MAX = 0.425
DENSITY_SPAN = 0.375
LFO_RATE_MIN = 0.00045
LFO_RATE_SPAN = 0.00055
LFO_DEPTH = 0.15
SMOOTHING = 0.005
NOTE_LENGTH_FACTOR = 2.5
MIX_AT_SPARSE = 1.08
MIX_AT_DENSE = 0.74

DRIFT_RATE_MIN = 0.003
DRIFT_RATE_SPAN = 0.006
DRIFT_CENTS_MIN = 4.0
DRIFT_CENTS_SPAN = 5.0


def map_range(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    return out_min + (out_max - out_min) * ((value - in_min) / (in_max - in_min))


def mix_level_for(run_density: float) -> float:
    """Wet mix hint: sparse passages get more room, dense ones less."""
    return map_range(run_density, DENSITY_MIN, DENSITY_MAX, MIX_AT_SPARSE, MIX_AT_DENSE)


@dataclass(slots=True)
class DensityState:
    base: float
    lfo_rate: float
    lfo_phase: float
    target: float
    run: float

    @classmethod
    def draw(cls, rng: RandomSource) -> "DensityState":
        base = DENSITY_MIN + rng.next() * DENSITY_SPAN
        lfo_rate = LFO_RATE_MIN + rng.next() * LFO_RATE_SPAN
        lfo_phase = rng.next() * math.pi * 2
        return cls(base=base, lfo_rate=lfo_rate, lfo_phase=lfo_phase, target=base, run=base)

    def copy(self) -> "DensityState":
        return replace(self)

    def update(self, elapsed: float) -> float:
        """Advance the slow arc to ``elapsed`` seconds and return the mix level."""
        lfo = math.sin(elapsed * self.lfo_rate * math.pi * 2 + self.lfo_phase)
        self.target = self.base * (1 + LFO_DEPTH * lfo)
        self.run += (self.target - self.run) * SMOOTHING
        self.run = max(DENSITY_MIN, min(DENSITY_MAX, self.run))
        return mix_level_for(self.run)

    def note_duration(self) -> float:
        return (1 / self.run) * NOTE_LENGTH_FACTOR

    def note_spacing(self, rng: RandomSource) -> float:
        return (1 / self.run) * (0.95 + rng.next() * 0.1)


@dataclass(frozen=True, slots=True)
class DriftParams:
    """Coherent, session-wide pitch wobble shared by every note."""

    rate_hz: float
    cents: float
    phase: float

    @classmethod
    def draw(cls, rng: RandomSource) -> "DriftParams":
        rate_hz = DRIFT_RATE_MIN + rng.next() * DRIFT_RATE_SPAN
        cents = DRIFT_CENTS_MIN + rng.next() * DRIFT_CENTS_SPAN
        phase = rng.next() * math.pi * 2
        return cls(rate_hz=rate_hz, cents=cents, phase=phase)

    def cents_at(self, elapsed: float) -> float:
        return math.sin(elapsed * self.rate_hz * math.pi * 2 + self.phase) * self.cents

    def ratio_at(self, elapsed: float) -> float:
        return 2 ** (self.cents_at(elapsed) / 1200)
