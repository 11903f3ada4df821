from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from .config import HarmonyTier
from .rng import RandomSource

_LOGGER = logging.getLogger("ambientseed.harmony")

SCALE_LENGTH = 7
MAJOR_INTERVALS: tuple[int, ...] = (0, 2, 4, 5, 7, 9, 11)
MINOR_INTERVALS: tuple[int, ...] = (0, 2, 3, 5, 7, 8, 10)
HARMONIC_MINOR_SEVENTH = 11
RECENT_MODULATION_SECONDS = 20.0
MIN_NOTES_BETWEEN_CHANGES = 17
HARMONY_BOUNDARY_STEPS = frozenset({0, 8})


@dataclass(slots=True)
class HarmonicState:
    """Key position on the circle of fifths plus major/minor mode."""

    circle_position: int = 0
    is_minor: bool = False
    recently_modulated_until: float = 0.0

    def copy(self) -> "HarmonicState":
        return replace(self)

    @property
    def key_index(self) -> int:
        return self.circle_position % 12

    def is_recently_modulated(self, now: float) -> bool:
        return now < self.recently_modulated_until


def can_modulate(
    *,
    phrase_step: int,
    total_seconds: float,
    last_cadence_landed_root: bool,
    notes_since_modulation: int,
) -> bool:
    """Eligibility gate checked before the modulation draw."""
    return (
        phrase_step in HARMONY_BOUNDARY_STEPS
        and total_seconds > 60
        and last_cadence_landed_root
        and notes_since_modulation >= MIN_NOTES_BETWEEN_CHANGES
    )


def _circle_step(rng: RandomSource, forward_bias: float) -> int:
    return 1 if rng.next() < forward_bias else -1


def advance_harmony(
    state: HarmonicState,
    tier: HarmonyTier,
    rng: RandomSource,
    now: float,
) -> bool:
    """Apply one tier-dependent modulation draw; return whether the key changed.

    Larger forms wander more: short pieces only flip mode, medium pieces may
    also step around the circle, and infinite pieces lean toward minor.
    """
    r = rng.next()
    if tier is HarmonyTier.STATIC:
        return False

    previous = (state.is_minor, state.circle_position)

    if tier is HarmonyTier.SHORT:
        if r < 0.2:
            state.is_minor = not state.is_minor
    elif tier is HarmonyTier.MEDIUM:
        if r < 0.35:
            state.is_minor = not state.is_minor
        else:
            state.circle_position += _circle_step(rng, 0.7)
    elif tier is HarmonyTier.INFINITE:
        if not state.is_minor:
            if r < 0.6:
                state.is_minor = True
            else:
                state.circle_position += _circle_step(rng, 0.9)
        elif r < 0.28:
            state.is_minor = False
        else:
            state.circle_position += _circle_step(rng, 0.9)

    changed = previous != (state.is_minor, state.circle_position)
    if changed:
        state.recently_modulated_until = now + RECENT_MODULATION_SECONDS
        _LOGGER.debug(
            "Harmony moved to circle=%d minor=%s at %.2fs",
            state.circle_position,
            state.is_minor,
            now,
        )
    return changed


def key_root_semitones(circle_position: int, is_minor: bool) -> int:
    semitones = ((circle_position % 12) * 7) % 12
    if is_minor:
        # Relative minor sits a minor third below the major root.
        return (semitones + 9) % 12
    return semitones


def scale_frequency(
    base_frequency: float,
    scale_index: int,
    circle_position: int,
    is_minor: bool,
    *,
    raise_leading_tone: bool = False,
) -> float:
    """Frequency of a diatonic scale index in the current key."""
    octave, degree = divmod(scale_index, SCALE_LENGTH)
    intervals = MINOR_INTERVALS if is_minor else MAJOR_INTERVALS
    interval = intervals[degree]
    if is_minor and raise_leading_tone and degree == SCALE_LENGTH - 1:
        interval = HARMONIC_MINOR_SEVENTH
    semitones = key_root_semitones(circle_position, is_minor) + interval + octave * 12
    return base_frequency * 2 ** (semitones / 12)
