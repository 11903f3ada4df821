from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .rng import RandomSource

_LOGGER = logging.getLogger("ambientseed.motif")

MOTIF_LENGTH = 4
MOTIF_LIMIT = 4
EVOLVE_EVERY_PHRASES = 8


def _clamp(value: int) -> int:
    return max(-MOTIF_LIMIT, min(MOTIF_LIMIT, value))


@dataclass(slots=True)
class Motif:
    """Short remembered interval shape, replayed round-robin."""

    intervals: list[int] = field(default_factory=list)
    cursor: int = 0

    def copy(self) -> "Motif":
        return Motif(intervals=list(self.intervals), cursor=self.cursor)

    def __len__(self) -> int:
        return len(self.intervals)

    def snapshot(self) -> tuple[int, ...]:
        return tuple(self.intervals)

    def next_interval(self) -> int:
        interval = self.intervals[self.cursor]
        self.cursor = (self.cursor + 1) % len(self.intervals)
        return interval

    def maybe_evolve(self, phrase_count: int, rng: RandomSource) -> bool:
        """Nudge one non-root interval by ±1 on every eighth completed phrase."""
        if phrase_count <= 0 or phrase_count % EVOLVE_EVERY_PHRASES != 0:
            return False
        if len(self.intervals) < MOTIF_LENGTH:
            return False
        index = 1 + int(rng.next() * (len(self.intervals) - 1))
        delta = -1 if rng.next() < 0.5 else 1
        self.intervals[index] = _clamp(self.intervals[index] + delta)
        _LOGGER.debug("Motif evolved at phrase %d: %s", phrase_count, self.intervals)
        return True


def generate_motif(rng: RandomSource) -> Motif:
    intervals = [0]
    walker = 0
    for _ in range(MOTIF_LENGTH - 1):
        direction = 1 if rng.next() < 0.5 else -1
        size = 2 if rng.next() < 0.25 else 1
        walker = _clamp(walker + direction * size)
        intervals.append(walker)

    if rng.next() < 0.25:
        intervals = [intervals[0]] + [-value for value in intervals[1:]]
    return Motif(intervals=intervals)
