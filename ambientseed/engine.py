"""One pure stepping function shared by the live scheduler and the mirror.

``advance(state, rng)`` never mutates ``state``; it returns the next state
plus the note events produced by that step. Both drivers hold their own
``EngineState`` and RNG and differ only in how they pace calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import NamedTuple

from .config import SessionConfig
from .density import DENSITY_MAX, DENSITY_MIN, DensityState, DriftParams, mix_level_for
from .errors import InvariantViolationError
from .events import NoteEvent, brightness_for, draw_voice_hints
from .harmony import HarmonicState, advance_harmony, can_modulate, scale_frequency
from .motif import Motif, generate_motif
from .phrase import (
    FINAL_STEP,
    PATTERN_MAX,
    PATTERN_MIN,
    PHRASE_LENGTH,
    PhraseState,
    cadence_move,
    degree_of,
    melodic_move,
    nudge_toward_root,
    should_raise_leading_tone,
    slowdown_factor,
    toll_probability,
)
from .rng import RandomSource

_LOGGER = logging.getLogger("ambientseed.engine")

MELODY_VELOCITY = 0.38
TOLL_VELOCITY = 0.34
TOLL_DURATION_AT_CADENCE = 14.0
TOLL_DURATION = 6.0
TOLL_ATTACK_AT_CADENCE = 0.03
TOLL_ATTACK = 0.02
FINAL_TOLL_VELOCITY = 0.45
FINAL_TOLL_DURATION = 18.0
BENEDICTION_VELOCITY = 0.20
BENEDICTION_DURATION = 28.0
BENEDICTION_DELAY = 1.2
BENEDICTION_ATTACK = 0.06


@dataclass(slots=True)
class EngineState:
    config: SessionConfig
    harmony: HarmonicState
    phrase: PhraseState
    motif: Motif
    density: DensityState
    drift: DriftParams
    next_time: float = 0.0
    notes_since_modulation: int = 0
    approaching_end: bool = False
    ended: bool = False

    def clone(self) -> "EngineState":
        return replace(
            self,
            harmony=self.harmony.copy(),
            phrase=self.phrase.copy(),
            motif=self.motif.copy(),
            density=self.density.copy(),
        )

    @property
    def base_frequency(self) -> float:
        return self.config.base_frequency


class Step(NamedTuple):
    state: EngineState
    events: tuple[NoteEvent, ...]
    mix_level: float


def begin_session(config: SessionConfig, rng: RandomSource) -> EngineState:
    """Draw the session-wide parameters in their fixed order."""
    density = DensityState.draw(rng)
    drift = DriftParams.draw(rng)
    motif = generate_motif(rng)
    return EngineState(
        config=config,
        harmony=HarmonicState(),
        phrase=PhraseState(),
        motif=motif,
        density=density,
        drift=drift,
    )


def mark_approaching_end(state: EngineState) -> EngineState:
    if state.approaching_end:
        return state
    return replace(state, approaching_end=True)


def check_invariants(state: EngineState) -> None:
    index = state.phrase.pattern_index
    if not PATTERN_MIN <= index <= PATTERN_MAX:
        raise InvariantViolationError(
            f"pattern index {index} outside [{PATTERN_MIN}, {PATTERN_MAX}]"
        )
    if not 0 <= state.phrase.phrase_step < PHRASE_LENGTH:
        raise InvariantViolationError(f"phrase step {state.phrase.phrase_step} outside [0, 16)")
    if not DENSITY_MIN <= state.density.run <= DENSITY_MAX:
        raise InvariantViolationError(f"run density {state.density.run} outside bounds")
    if len(state.motif) and not 0 <= state.motif.cursor < len(state.motif):
        raise InvariantViolationError(f"motif cursor {state.motif.cursor} outside motif")


def _closing_notes(state: EngineState, rng: RandomSource, time: float) -> tuple[NoteEvent, ...]:
    """A last low toll followed by a soft, centred benediction."""
    harmony = state.harmony
    frequency = scale_frequency(
        state.base_frequency,
        state.phrase.pattern_index,
        harmony.circle_position,
        harmony.is_minor,
    )
    step = state.phrase.phrase_step
    brightness = brightness_for(step, is_cadence=True, approaching_end=True)
    toll = NoteEvent(
        frequency=frequency * 0.5,
        start_time=time,
        duration=FINAL_TOLL_DURATION,
        velocity=FINAL_TOLL_VELOCITY,
        phrase_step=step,
        is_cadence=True,
        is_approaching_end=True,
        kind="final_toll",
        voice_hints=draw_voice_hints(
            rng, start_time=time, drift=state.drift, brightness=brightness
        ),
    )
    blessing_time = time + BENEDICTION_DELAY
    benediction = NoteEvent(
        frequency=frequency * 0.5,
        start_time=blessing_time,
        duration=BENEDICTION_DURATION,
        velocity=BENEDICTION_VELOCITY,
        phrase_step=step,
        is_cadence=True,
        is_approaching_end=True,
        kind="benediction",
        voice_hints=draw_voice_hints(
            rng,
            start_time=blessing_time,
            drift=state.drift,
            brightness=brightness,
            attack=BENEDICTION_ATTACK,
            pan_base=0.0,
        ),
    )
    return toll, benediction


def advance(state: EngineState, rng: RandomSource) -> Step:
    """Produce the next note (or the closing pair) and the successor state."""
    if state.ended:
        return Step(state, (), mix_level_for(state.density.run))

    s = state.clone()
    time = s.next_time
    mix_level = s.density.update(time)
    phrase = s.phrase

    if s.approaching_end:
        if phrase.pattern_index % 7 == 0:
            events = _closing_notes(s, rng, time)
            s.ended = True
            _LOGGER.info("Natural ending reached at %.2fs", time)
            return Step(s, events, mix_level)
        phrase.pattern_index = nudge_toward_root(phrase.pattern_index)

    if phrase.advance_step():
        s.motif.maybe_evolve(phrase.phrase_count, rng)
    step = phrase.phrase_step
    is_cadence = phrase.is_cadence

    if not s.approaching_end:
        eligible = can_modulate(
            phrase_step=step,
            total_seconds=s.config.total_seconds,
            last_cadence_landed_root=phrase.last_cadence_landed_root,
            notes_since_modulation=s.notes_since_modulation,
        )
        if eligible and rng.next() < s.config.modulation_chance:
            advance_harmony(s.harmony, s.config.tier, rng, time)
            s.notes_since_modulation = 0

    duration = s.density.note_duration() * slowdown_factor(step, rng)

    if is_cadence:
        cadence_move(phrase, s.approaching_end, rng)
    else:
        melodic_move(phrase, s.motif, rng)

    phrase.clamp()
    check_invariants(s)

    degree = degree_of(phrase.pattern_index)
    harmony = s.harmony
    frequency = scale_frequency(
        s.base_frequency,
        phrase.pattern_index,
        harmony.circle_position,
        harmony.is_minor,
        raise_leading_tone=should_raise_leading_tone(phrase, is_minor=harmony.is_minor),
    )

    if step == FINAL_STEP:
        phrase.last_cadence_landed_root = degree == 0

    context_lift = harmony.is_minor or harmony.is_recently_modulated(time)
    toll_draw = rng.next()
    if toll_draw < toll_probability(step, context_lift=context_lift) and degree == 0:
        at_cadence = step == FINAL_STEP
        event = NoteEvent(
            frequency=frequency * 0.5,
            start_time=time,
            duration=TOLL_DURATION_AT_CADENCE if at_cadence else TOLL_DURATION,
            velocity=TOLL_VELOCITY,
            phrase_step=step,
            is_cadence=False,
            is_approaching_end=s.approaching_end,
            kind="toll",
            voice_hints=draw_voice_hints(
                rng,
                start_time=time,
                drift=s.drift,
                brightness=brightness_for(
                    step, is_cadence=False, approaching_end=s.approaching_end
                ),
                attack=TOLL_ATTACK_AT_CADENCE if at_cadence else TOLL_ATTACK,
            ),
        )
    else:
        event = NoteEvent(
            frequency=frequency,
            start_time=time,
            duration=duration,
            velocity=MELODY_VELOCITY,
            phrase_step=step,
            is_cadence=is_cadence,
            is_approaching_end=s.approaching_end,
            voice_hints=draw_voice_hints(
                rng,
                start_time=time,
                drift=s.drift,
                brightness=brightness_for(
                    step, is_cadence=is_cadence, approaching_end=s.approaching_end
                ),
            ),
        )

    s.notes_since_modulation += 1
    if step == FINAL_STEP:
        phrase.pending_leading_tone = False

    s.next_time = time + s.density.note_spacing(rng)
    return Step(s, (event,), mix_level)
