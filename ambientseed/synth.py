# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false

"""
Two-operator FM tone rendering for note events.

1. Primitives: exponential ramps, equal-power panning, filters
2. Voices: one stereo FM voice per ``VoiceShape`` in a note's hints
3. Bus: dry sum plus a pre-delayed, convolved wet send scaled by mix level
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import lru_cache
from typing import TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.signal import butter, fftconvolve, lfilter  # type: ignore[import]

from .events import NoteEvent, VoiceShape

_LOGGER = logging.getLogger("ambientseed.synth")

FloatArray: TypeAlias = NDArray[np.float64]

SAMPLE_RATE = 44100
MASTER_GAIN = 0.3
RELEASE_FLOOR = 0.0001
MIN_CARRIER_HZ = 10.0
MIN_MODULATOR_HZ = 1.0
MOD_DEPTH_FLOOR_RATIO = 0.45
PREDELAY_SECONDS = 0.02
IMPULSE_SECONDS = 5.0
IMPULSE_DECAY = 1.5
WET_LOWPASS_HZ = 6000.0
FADE_FLOOR = 0.001


# =============================================================================
# PRIMITIVES
# =============================================================================


def exponential_ramp(start: float, end: float, length: int) -> FloatArray:
    """Geometric ramp from ``start`` to ``end``; both must be positive."""
    if length <= 0:
        return np.zeros(0)
    if length == 1:
        return np.array([end], dtype=np.float64)
    position = np.arange(length, dtype=np.float64) / (length - 1)
    return start * (end / start) ** position


def pan_gains(pan: float) -> tuple[float, float]:
    """Equal-power left/right gains for a mono source at ``pan`` in [-1, 1]."""
    x = (min(1.0, max(-1.0, pan)) + 1.0) / 2.0
    return float(np.cos(x * np.pi / 2)), float(np.sin(x * np.pi / 2))


@lru_cache(maxsize=64)
def _butter_cached(
    kind: str, normalized_cutoff: float
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    coeffs = butter(2, normalized_cutoff, btype=kind, output="ba")
    assert isinstance(coeffs, tuple)
    b_raw, a_raw = coeffs
    return np.asarray(b_raw, dtype=np.float64), np.asarray(a_raw, dtype=np.float64)


def apply_lowpass(signal: FloatArray, cutoff: float, sr: int = SAMPLE_RATE) -> FloatArray:
    """Causal second-order lowpass along the time axis."""
    normalized = min(max(cutoff / (sr / 2), 0.001), 0.99)
    b, a = _butter_cached("low", round(normalized, 3))
    return np.asarray(lfilter(b, a, signal, axis=0), dtype=np.float64)


@lru_cache(maxsize=4)
def impulse_response(sr: int = SAMPLE_RATE, seed: int = 0) -> FloatArray:
    """Stereo decaying-noise room response; unrelated to the melodic RNG."""
    length = int(sr * IMPULSE_SECONDS)
    noise = np.random.default_rng(seed).uniform(-1.0, 1.0, size=(length, 2))
    decay = (1.0 - np.arange(length) / length) ** IMPULSE_DECAY
    response = noise * decay[:, None]
    response.setflags(write=False)
    return response


def add_note(signal: FloatArray, note: FloatArray, start_index: int) -> None:
    """Mix ``note`` into ``signal`` at ``start_index``, clipping at either edge."""
    if start_index >= len(signal):
        return
    if start_index < 0:
        note = note[-start_index:]
        start_index = 0
    end_index = min(len(signal), start_index + len(note))
    signal[start_index:end_index] += note[: end_index - start_index]


# =============================================================================
# VOICES
# =============================================================================


def _fm_voice(
    voice: VoiceShape,
    *,
    frequency: float,
    peak: float,
    duration: float,
    attack: float,
    sr: int,
) -> FloatArray:
    total = max(1, int(duration * sr))
    mod_freq = max(MIN_MODULATOR_HZ, frequency * voice.mod_ratio)
    depth = exponential_ramp(
        max(MIN_MODULATOR_HZ, frequency * voice.mod_index),
        max(1.0, frequency * MOD_DEPTH_FLOOR_RATIO),
        total,
    )
    t = np.arange(total, dtype=np.float64) / sr
    instantaneous = frequency + depth * np.sin(2 * np.pi * mod_freq * t)
    phase = 2 * np.pi * np.cumsum(instantaneous) / sr
    carrier = np.sin(phase)

    attack_samples = min(total, max(1, int(attack * sr)))
    peak = max(peak, RELEASE_FLOOR)
    envelope = np.concatenate(
        (
            exponential_ramp(RELEASE_FLOOR, peak, attack_samples),
            exponential_ramp(peak, RELEASE_FLOOR, total - attack_samples),
        )
    )
    mono = carrier * envelope
    left, right = pan_gains(voice.pan)
    return np.stack((mono * left, mono * right), axis=1)


def render_note(event: NoteEvent, sr: int = SAMPLE_RATE) -> FloatArray:
    """Dry stereo rendering of one note, starting at sample zero."""
    hints = event.voice_hints
    frequency = max(MIN_CARRIER_HZ, event.frequency * hints.drift_ratio + hints.detune_hz)
    total_amp = sum(voice.amp for voice in hints.voices) or 1.0
    length = max(1, int(event.duration * sr))
    output = np.zeros((length, 2), dtype=np.float64)
    for voice in hints.voices:
        add_note(
            output,
            _fm_voice(
                voice,
                frequency=frequency,
                peak=(voice.amp / total_amp) * event.velocity,
                duration=event.duration,
                attack=hints.attack,
                sr=sr,
            ),
            0,
        )
    return output


# =============================================================================
# BUS
# =============================================================================


def apply_wet_bus(send: FloatArray, sr: int = SAMPLE_RATE) -> FloatArray:
    """Pre-delay, convolve and soften the wet send; output has the input's length."""
    if send.size == 0:
        return send
    delay = int(PREDELAY_SECONDS * sr)
    delayed = np.zeros_like(send)
    if delay < len(send):
        delayed[delay:] = send[: len(send) - delay]
    response = impulse_response(sr)
    wet = fftconvolve(delayed, response, mode="full", axes=0)[: len(send)]
    # Roughly unit-energy room.
    wet = wet / np.sqrt(len(response))
    return apply_lowpass(wet, WET_LOWPASS_HZ, sr)


def render_events(
    events: Sequence[NoteEvent],
    mix_levels: Sequence[float],
    *,
    seconds: float,
    sr: int = SAMPLE_RATE,
) -> FloatArray:
    """Mix a run of session-relative note events into one stereo buffer."""
    if len(events) != len(mix_levels):
        raise ValueError("events and mix_levels must have the same length")
    length = max(1, int(seconds * sr))
    dry = np.zeros((length, 2), dtype=np.float64)
    send = np.zeros((length, 2), dtype=np.float64)
    for event, mix_level in zip(events, mix_levels):
        note = render_note(event, sr)
        start = int(round(event.start_time * sr))
        add_note(dry, note, start)
        add_note(send, note * mix_level, start)
    _LOGGER.debug("Rendered %d notes into %.1fs buffer", len(events), seconds)
    return (dry + apply_wet_bus(send, sr)) * MASTER_GAIN


def render_with_room(event: NoteEvent, mix_level: float, sr: int = SAMPLE_RATE) -> FloatArray:
    """One note plus its own room tail, at master gain, for streaming output."""
    note = render_note(event, sr)
    padded = np.zeros((len(note) + len(impulse_response(sr)), 2), dtype=np.float64)
    padded[: len(note)] = note
    return (padded + apply_wet_bus(padded * mix_level, sr)) * MASTER_GAIN


def fade_curve(length: int, start_index: int, fade_samples: int) -> FloatArray:
    """Unity gain, then an exponential fall to silence from ``start_index``."""
    gain = np.ones(length, dtype=np.float64)
    if start_index >= length:
        return gain
    start_index = max(0, start_index)
    fall = exponential_ramp(1.0, FADE_FLOOR, max(1, fade_samples))
    end_index = min(length, start_index + len(fall))
    gain[start_index:end_index] = fall[: end_index - start_index]
    gain[end_index:] = 0.0
    return gain


class OfflineBufferRenderer:
    """Tone renderer that collects a live session and mixes it on demand."""

    def __init__(self, *, sample_rate: int = SAMPLE_RATE) -> None:
        self._sample_rate = sample_rate
        self._events: list[NoteEvent] = []
        self._mix_levels: list[float] = []
        self._fade: tuple[float, float] | None = None
        self.released = False

    @property
    def events(self) -> tuple[NoteEvent, ...]:
        return tuple(self._events)

    def render(self, event: NoteEvent, *, mix_level: float) -> None:
        if self.released:
            self._events.clear()
            self._mix_levels.clear()
            self._fade = None
            self.released = False
        self._events.append(event)
        self._mix_levels.append(mix_level)

    def fade_out(self, seconds: float, *, at: float) -> None:
        if self._fade is None:
            self._fade = (at, seconds)

    def release(self) -> None:
        self.released = True

    def to_buffer(self, seconds: float | None = None) -> FloatArray:
        if seconds is None:
            seconds = max((event.end_time for event in self._events), default=0.0)
        sr = self._sample_rate
        audio = render_events(self._events, self._mix_levels, seconds=seconds, sr=sr)
        if self._fade is not None:
            start, length = self._fade
            audio = audio * fade_curve(len(audio), int(start * sr), int(length * sr))[:, None]
        return audio

