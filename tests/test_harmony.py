from __future__ import annotations

import pytest

from ambientseed.config import HarmonyTier, SessionConfig
from ambientseed.engine import advance, begin_session
from ambientseed.harmony import (
    HarmonicState,
    advance_harmony,
    can_modulate,
    key_root_semitones,
    scale_frequency,
)
from ambientseed.rng import SeededRNG


@pytest.mark.parametrize("draw", [0.0, 0.05, 0.19, 0.5, 0.99])
def test_static_tier_never_moves(scripted, draw: float) -> None:
    state = HarmonicState()
    rng = scripted(draw)
    assert advance_harmony(state, HarmonyTier.STATIC, rng, now=10.0) is False
    assert state == HarmonicState()
    assert rng.remaining == 0


def test_sixty_second_session_keeps_its_key() -> None:
    for seed in (1, 894922100, 123456789):
        rng = SeededRNG(seed)
        state = begin_session(SessionConfig(duration="60"), rng)
        for _ in range(3000):
            state = advance(state, rng).state
            assert state.harmony.circle_position == 0
            assert state.harmony.is_minor is False


def test_gate_rejects_short_forms_and_unresolved_cadences() -> None:
    base = dict(phrase_step=0, last_cadence_landed_root=True, notes_since_modulation=17)
    assert can_modulate(total_seconds=300, **base)
    assert not can_modulate(total_seconds=60, **base)
    assert not can_modulate(total_seconds=300, **{**base, "last_cadence_landed_root": False})
    assert not can_modulate(total_seconds=300, **{**base, "notes_since_modulation": 16})
    assert not can_modulate(total_seconds=300, **{**base, "phrase_step": 4})
    assert can_modulate(total_seconds=300, **{**base, "phrase_step": 8})


@pytest.mark.parametrize("draw", [0.0, 0.3, 0.5999])
def test_infinite_major_sinks_to_minor_without_moving(scripted, draw: float) -> None:
    state = HarmonicState(circle_position=3, is_minor=False)
    rng = scripted(draw)
    assert advance_harmony(state, HarmonyTier.INFINITE, rng, now=5.0)
    assert state.is_minor is True
    assert state.circle_position == 3
    assert state.recently_modulated_until == 25.0
    assert rng.remaining == 0


def test_infinite_major_otherwise_steps_forward(scripted) -> None:
    state = HarmonicState()
    advance_harmony(state, HarmonyTier.INFINITE, scripted(0.6, 0.89), now=0.0)
    assert (state.is_minor, state.circle_position) == (False, 1)


def test_infinite_minor_surfaces_or_steps_back(scripted) -> None:
    state = HarmonicState(is_minor=True)
    advance_harmony(state, HarmonyTier.INFINITE, scripted(0.27), now=0.0)
    assert state.is_minor is False

    state = HarmonicState(is_minor=True)
    advance_harmony(state, HarmonyTier.INFINITE, scripted(0.28, 0.95), now=0.0)
    assert (state.is_minor, state.circle_position) == (True, -1)


def test_medium_tier_flips_or_steps(scripted) -> None:
    state = HarmonicState()
    advance_harmony(state, HarmonyTier.MEDIUM, scripted(0.34), now=0.0)
    assert state.is_minor is True

    state = HarmonicState()
    advance_harmony(state, HarmonyTier.MEDIUM, scripted(0.35, 0.69), now=0.0)
    assert (state.is_minor, state.circle_position) == (False, 1)

    state = HarmonicState()
    advance_harmony(state, HarmonyTier.MEDIUM, scripted(0.9, 0.7), now=0.0)
    assert state.circle_position == -1


def test_short_tier_only_flips_mode(scripted) -> None:
    state = HarmonicState()
    assert advance_harmony(state, HarmonyTier.SHORT, scripted(0.19), now=1.0)
    assert state.is_minor is True

    state = HarmonicState()
    assert not advance_harmony(state, HarmonyTier.SHORT, scripted(0.2), now=1.0)
    assert state.recently_modulated_until == 0.0


def test_recent_modulation_is_a_hard_cutoff() -> None:
    state = HarmonicState(recently_modulated_until=25.0)
    assert state.is_recently_modulated(24.999)
    assert not state.is_recently_modulated(25.0)


def test_key_root_semitones_walks_the_circle() -> None:
    assert key_root_semitones(0, False) == 0
    assert key_root_semitones(1, False) == 7
    assert key_root_semitones(-1, False) == 5
    assert key_root_semitones(12, False) == 0
    assert key_root_semitones(0, True) == 9
    assert HarmonicState(circle_position=-13).key_index == 11


def test_scale_frequency_folds_octaves() -> None:
    assert scale_frequency(110.0, 0, 0, False) == 110.0
    assert scale_frequency(110.0, 7, 0, False) == pytest.approx(220.0)
    assert scale_frequency(110.0, -7, 0, False) == pytest.approx(55.0)
    assert scale_frequency(110.0, -1, 0, False) == pytest.approx(110.0 * 2 ** (-1 / 12))
    assert scale_frequency(110.0, 2, 0, False) == pytest.approx(110.0 * 2 ** (4 / 12))


def test_minor_mode_and_raised_leading_tone() -> None:
    assert scale_frequency(110.0, 0, 0, True) == pytest.approx(110.0 * 2 ** (9 / 12))
    natural = scale_frequency(110.0, 6, 0, True)
    raised = scale_frequency(110.0, 6, 0, True, raise_leading_tone=True)
    assert natural == pytest.approx(110.0 * 2 ** (19 / 12))
    assert raised == pytest.approx(110.0 * 2 ** (20 / 12))
    # Major mode ignores the flag.
    assert scale_frequency(110.0, 6, 0, False, raise_leading_tone=True) == scale_frequency(
        110.0, 6, 0, False
    )
