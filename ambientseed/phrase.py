"""16-step phrase cycle: cadence gravity, leading tones and bass tolling.

Every probability below is a tuned constant. A draw succeeds iff
``rng.next() < threshold``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping

from .harmony import SCALE_LENGTH
from .motif import Motif
from .rng import RandomSource

PHRASE_LENGTH = 16
CADENCE_START_STEP = 13
FINAL_STEP = 15
LEADING_TONE_STEP = 14
PATTERN_MIN = -8
PATTERN_MAX = 10
CADENCE_TARGETS: tuple[int, ...] = (0, 2, 4)
LEADING_TONE_DEGREE = 6

SLOWDOWN_PROBABILITY: Mapping[int, float] = MappingProxyType(
    {15: 0.85, 0: 0.25, 14: 0.35, 13: 0.20}
)
SLOWDOWN_MIN = 1.20
SLOWDOWN_SPAN = 0.20

LAND_PROBABILITY = 0.55
FINAL_LAND_PROBABILITY = 0.85
END_LAND_BOOST = 0.25
END_LAND_BOOST_EARLY = END_LAND_BOOST * 0.6
MISS_DOWNWARD_PROBABILITY = 0.65
STATIC_AVOIDANCE_PROBABILITY = 0.25
LEADING_TONE_SETUP_PROBABILITY = 0.65
RESOLVE_WITH_LEADING_TONE = 0.985
RESOLVE_WITHOUT_LEADING_TONE = 0.92

FORCED_MOTIF_STEPS = frozenset({0, 1})
MOTIF_PROBABILITY = 0.55
MOTIF_ANSWER_PROBABILITY = 0.20
WALK_UP_THRESHOLD = 0.45
WALK_DOWN_THRESHOLD = 0.90

TOLL_AT_CADENCE = 0.08
TOLL_ELSEWHERE = 0.02
TOLL_CADENCE_LIFT = 0.08
TOLL_ELSEWHERE_LIFT = 0.03


@dataclass(slots=True)
class PhraseState:
    # Starts on the last step so the first note lands on the downbeat.
    phrase_step: int = FINAL_STEP
    phrase_count: int = 0
    pending_leading_tone: bool = False
    last_cadence_landed_root: bool = True
    pattern_index: int = 0

    def copy(self) -> "PhraseState":
        return replace(self)

    def advance_step(self) -> bool:
        """Move to the next step; return True when a new phrase begins."""
        self.phrase_step = (self.phrase_step + 1) % PHRASE_LENGTH
        if self.phrase_step != 0:
            return False
        self.pending_leading_tone = False
        self.phrase_count += 1
        return True

    @property
    def is_cadence(self) -> bool:
        return self.phrase_step >= CADENCE_START_STEP

    @property
    def degree(self) -> int:
        return degree_of(self.pattern_index)

    def clamp(self) -> None:
        self.pattern_index = max(PATTERN_MIN, min(PATTERN_MAX, self.pattern_index))


def degree_of(index: int) -> int:
    return index % SCALE_LENGTH


def octave_base(index: int) -> int:
    return (index // SCALE_LENGTH) * SCALE_LENGTH


def shortest_delta(delta: int) -> int:
    """Fold a degree difference onto the shortest circular path, [-3, 3]."""
    if delta > 3:
        delta -= SCALE_LENGTH
    if delta < -3:
        delta += SCALE_LENGTH
    return delta


def circular_distance(a: int, b: int) -> int:
    d = abs(a - b)
    return min(d, SCALE_LENGTH - d)


def move_to_degree(index: int, degree: int) -> int:
    return index + shortest_delta(degree - degree_of(index))


def nudge_toward_root(index: int) -> int:
    if degree_of(index) == 0:
        return index
    return move_to_degree(index, 0)


def slowdown_factor(phrase_step: int, rng: RandomSource) -> float:
    probability = SLOWDOWN_PROBABILITY.get(phrase_step, 0.0)
    if rng.next() < probability:
        return SLOWDOWN_MIN + rng.next() * SLOWDOWN_SPAN
    return 1.0


def nearest_cadence_target(degree: int, rng: RandomSource) -> int:
    """Closest of the tonic-triad degrees; ties go to a coin flip."""
    best = CADENCE_TARGETS[0]
    best_distance = circular_distance(degree, best)
    for target in CADENCE_TARGETS[1:]:
        distance = circular_distance(degree, target)
        if distance < best_distance or (distance == best_distance and rng.next() < 0.5):
            best = target
            best_distance = distance
    return best


def land_probability(phrase_step: int, approaching_end: bool) -> float:
    if phrase_step >= FINAL_STEP:
        return FINAL_LAND_PROBABILITY + (END_LAND_BOOST if approaching_end else 0.0)
    return LAND_PROBABILITY + (END_LAND_BOOST_EARLY if approaching_end else 0.0)


def cadence_move(state: PhraseState, approaching_end: bool, rng: RandomSource) -> None:
    """Cadence steps 13-15: pull toward the triad, set up and resolve the leading tone."""
    step = state.phrase_step
    base = octave_base(state.pattern_index)
    degree = degree_of(state.pattern_index)

    target = nearest_cadence_target(degree, rng)
    if not rng.next() < land_probability(step, approaching_end):
        direction = -1 if rng.next() < MISS_DOWNWARD_PROBABILITY else 1
        target = (target + direction + SCALE_LENGTH) % SCALE_LENGTH

    delta = shortest_delta(target - degree)
    if abs(delta) == 3:
        delta = -3
    elif delta == 0 and step <= LEADING_TONE_STEP and rng.next() < STATIC_AVOIDANCE_PROBABILITY:
        delta = -1
    state.pattern_index = base + degree + delta

    if step == LEADING_TONE_STEP and rng.next() < LEADING_TONE_SETUP_PROBABILITY:
        state.pattern_index = move_to_degree(state.pattern_index, LEADING_TONE_DEGREE)
        state.pending_leading_tone = True

    if step == FINAL_STEP:
        resolve_to_root(state, rng)


def resolve_to_root(state: PhraseState, rng: RandomSource) -> bool:
    """Final-step resolution; a pending leading tone makes it near certain."""
    threshold = (
        RESOLVE_WITH_LEADING_TONE if state.pending_leading_tone else RESOLVE_WITHOUT_LEADING_TONE
    )
    if rng.next() < threshold:
        state.pattern_index = move_to_degree(state.pattern_index, 0)
        return True
    return False


def melodic_move(state: PhraseState, motif: Motif, rng: RandomSource) -> None:
    """Non-cadence steps: replay the motif or take a weighted step."""
    forced = state.phrase_step in FORCED_MOTIF_STEPS
    if len(motif) > 0 and (forced or rng.next() < MOTIF_PROBABILITY):
        state.pattern_index = octave_base(state.pattern_index) + motif.next_interval()
        if not forced and rng.next() < MOTIF_ANSWER_PROBABILITY:
            state.pattern_index += -1 if rng.next() < 0.5 else 1
        return

    r = rng.next()
    if r < WALK_UP_THRESHOLD:
        shift = 1
    elif r < WALK_DOWN_THRESHOLD:
        shift = -1
    else:
        shift = 2 if rng.next() < 0.5 else -2
    state.pattern_index += shift


def should_raise_leading_tone(state: PhraseState, *, is_minor: bool) -> bool:
    return (
        state.is_cadence
        and is_minor
        and state.degree == LEADING_TONE_DEGREE
        and (state.phrase_step == LEADING_TONE_STEP or state.pending_leading_tone)
    )


def toll_probability(phrase_step: int, *, context_lift: bool) -> float:
    """Chance of a sub-octave toll; never on the phrase's first two steps."""
    if phrase_step in FORCED_MOTIF_STEPS:
        return 0.0
    lift = 1.0 if context_lift else 0.0
    if phrase_step == FINAL_STEP:
        return TOLL_AT_CADENCE + TOLL_CADENCE_LIFT * lift
    return TOLL_ELSEWHERE + TOLL_ELSEWHERE_LIFT * lift
