from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, field_validator

_LOGGER = logging.getLogger("ambientseed.config")

DurationToken = Literal["60", "300", "600", "1800", "infinite"]

MIN_BASE_FREQUENCY = 30.0
MAX_BASE_FREQUENCY = 200.0
DEFAULT_BASE_FREQUENCY = 110.0
DEFAULT_DURATION: DurationToken = "60"
INFINITE_SECONDS = 99999.0

_DURATION_TOKENS: tuple[str, ...] = get_args(DurationToken)


class HarmonyTier(str, Enum):
    """How freely harmony may drift, bucketed by total piece length."""

    STATIC = "static"
    SHORT = "short"
    MEDIUM = "medium"
    INFINITE = "infinite"


def tier_for(total_seconds: float, *, is_infinite: bool) -> HarmonyTier:
    if total_seconds <= 60:
        return HarmonyTier.STATIC
    if total_seconds <= 300:
        return HarmonyTier.SHORT
    if total_seconds <= 1800:
        return HarmonyTier.MEDIUM
    if is_infinite:
        return HarmonyTier.INFINITE
    # Finite pieces longer than 1800 s are not offered; they stay put.
    return HarmonyTier.STATIC


def coerce_base_frequency(value: Any) -> float:
    """Clamp a base frequency into the playable range; unusable values fall back."""
    match value:
        case bool() | None:
            number = math.nan
        case int() | float():
            number = float(value)
        case str():
            try:
                number = float(value.strip())
            except ValueError:
                number = math.nan
        case _:
            number = math.nan
    if not math.isfinite(number):
        _LOGGER.warning(
            "Unusable base frequency %r; using %.1f Hz", value, DEFAULT_BASE_FREQUENCY
        )
        return DEFAULT_BASE_FREQUENCY
    clamped = min(MAX_BASE_FREQUENCY, max(MIN_BASE_FREQUENCY, number))
    if clamped != number:
        _LOGGER.warning("Base frequency %.2f Hz out of range; clamped to %.2f Hz", number, clamped)
    return clamped


def coerce_duration(value: Any) -> DurationToken:
    """Normalise a duration token, falling back to the shortest tier."""
    match value:
        case bool():
            token = None
        case int() | float() if math.isfinite(value) and float(value).is_integer():
            token = str(int(value))
        case str():
            token = value.strip().lower()
        case _:
            token = None
    if token in _DURATION_TOKENS:
        return token  # type: ignore[return-value]
    _LOGGER.warning("Unrecognised duration %r; using %s s", value, DEFAULT_DURATION)
    return DEFAULT_DURATION


class SessionConfig(BaseModel):
    """User-facing session settings, clamped rather than rejected."""

    base_frequency: float = DEFAULT_BASE_FREQUENCY
    duration: DurationToken = DEFAULT_DURATION

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("base_frequency", mode="before")
    @classmethod
    def _clamp_frequency(cls, value: Any) -> float:
        return coerce_base_frequency(value)

    @field_validator("duration", mode="before")
    @classmethod
    def _normalise_duration(cls, value: Any) -> str:
        return coerce_duration(value)

    @property
    def is_infinite(self) -> bool:
        return self.duration == "infinite"

    @property
    def total_seconds(self) -> float:
        if self.is_infinite:
            return INFINITE_SECONDS
        return float(self.duration)

    @property
    def tier(self) -> HarmonyTier:
        return tier_for(self.total_seconds, is_infinite=self.is_infinite)

    @property
    def modulation_chance(self) -> float:
        if not self.is_infinite and self.total_seconds > 300:
            return 0.35
        return 0.10
