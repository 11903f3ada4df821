from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .density import DriftParams
from .rng import RandomSource

NoteKind = Literal["melody", "toll", "final_toll", "benediction"]

VOICE_COUNT = 2
DEFAULT_ATTACK = 0.01
PAN_LIMIT = 0.65
VOICE_SPREAD = 0.22


class VoiceShape(BaseModel):
    """One FM voice of a note: relative level, modulation and stereo position."""

    amp: float
    mod_index: float
    mod_ratio: float
    pan: float = Field(ge=-PAN_LIMIT, le=PAN_LIMIT)

    model_config = ConfigDict(frozen=True, extra="forbid")


class VoiceHints(BaseModel):
    """Timbre hints for the tone renderer; they carry no melodic meaning."""

    brightness: float
    attack: float = DEFAULT_ATTACK
    pan_base: float
    detune_hz: float
    drift_ratio: float
    voices: tuple[VoiceShape, ...]

    model_config = ConfigDict(frozen=True, extra="forbid")


class NoteEvent(BaseModel):
    frequency: float = Field(gt=0.0)
    start_time: float = Field(ge=0.0)
    duration: float = Field(gt=0.0)
    velocity: float = Field(ge=0.0, le=1.0)
    phrase_step: int = Field(ge=0, lt=16)
    is_cadence: bool
    is_approaching_end: bool
    kind: NoteKind = "melody"
    voice_hints: VoiceHints

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


def brightness_for(phrase_step: int, *, is_cadence: bool, approaching_end: bool) -> float:
    """Softer early in the phrase, a touch brighter at the cadence."""
    if approaching_end:
        return 0.55
    if is_cadence:
        return 0.65
    if phrase_step <= 3:
        return 0.35
    if phrase_step <= 8:
        return 0.45
    return 0.55


def draw_voice_hints(
    rng: RandomSource,
    *,
    start_time: float,
    drift: DriftParams,
    brightness: float,
    attack: float = DEFAULT_ATTACK,
    pan_base: float | None = None,
) -> VoiceHints:
    """Draw the per-note voice shaping from the session RNG.

    The draw order is fixed: pan base (unless given), detune, then amp,
    modulation index, modulation ratio and pan jitter for each voice.
    """
    if pan_base is None:
        pan_base = rng.next() * 0.4 - 0.2
    detune_hz = (rng.next() - 0.5) * 0.3

    voices: list[VoiceShape] = []
    for index in range(VOICE_COUNT):
        amp = rng.next()
        mod_index = (1 + rng.next() * 4) * brightness
        mod_ratio = 1.5 + rng.next() * 2.5
        spread = -VOICE_SPREAD if index == 0 else VOICE_SPREAD
        pan = pan_base + spread + (rng.next() * 0.08 - 0.04)
        pan = max(-PAN_LIMIT, min(PAN_LIMIT, pan))
        voices.append(VoiceShape(amp=amp, mod_index=mod_index, mod_ratio=mod_ratio, pan=pan))

    return VoiceHints(
        brightness=brightness,
        attack=attack,
        pan_base=pan_base,
        detune_hz=detune_hz,
        drift_ratio=drift.ratio_at(start_time),
        voices=tuple(voices),
    )
