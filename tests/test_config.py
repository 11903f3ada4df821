from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from ambientseed.config import HarmonyTier, SessionConfig, coerce_duration, tier_for


def test_defaults() -> None:
    config = SessionConfig()
    assert config.base_frequency == 110.0
    assert config.duration == "60"
    assert config.total_seconds == 60.0
    assert config.tier is HarmonyTier.STATIC


@pytest.mark.parametrize(
    ("value", "expected"),
    [(10, 30.0), (500.0, 200.0), ("75.5", 75.5), (30, 30.0), (200, 200.0)],
)
def test_base_frequency_is_clamped(value: object, expected: float) -> None:
    assert SessionConfig(base_frequency=value).base_frequency == expected


def test_non_finite_frequency_falls_back_to_default() -> None:
    assert SessionConfig(base_frequency=math.nan).base_frequency == 110.0
    assert SessionConfig(base_frequency=math.inf).base_frequency == 110.0


@pytest.mark.parametrize("value", ["low", True, None, [110.0], ""])
def test_non_numeric_frequency_falls_back_to_default(value: object) -> None:
    assert SessionConfig(base_frequency=value).base_frequency == 110.0


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("infinite", "infinite"),
        (" INFINITE ", "infinite"),
        (300, "300"),
        (600.0, "600"),
        ("1800", "1800"),
        ("bogus", "60"),
        (45, "60"),
        (None, "60"),
        (True, "60"),
    ],
)
def test_duration_tokens_are_normalised(value: object, expected: str) -> None:
    assert coerce_duration(value) == expected


@pytest.mark.parametrize(
    ("duration", "tier"),
    [
        ("60", HarmonyTier.STATIC),
        ("300", HarmonyTier.SHORT),
        ("600", HarmonyTier.MEDIUM),
        ("1800", HarmonyTier.MEDIUM),
        ("infinite", HarmonyTier.INFINITE),
    ],
)
def test_tier_by_duration(duration: str, tier: HarmonyTier) -> None:
    assert SessionConfig(duration=duration).tier is tier


def test_long_finite_pieces_stay_static() -> None:
    assert tier_for(3600.0, is_infinite=False) is HarmonyTier.STATIC


@pytest.mark.parametrize(
    ("duration", "chance"),
    [("60", 0.10), ("300", 0.10), ("600", 0.35), ("1800", 0.35), ("infinite", 0.10)],
)
def test_modulation_chance(duration: str, chance: float) -> None:
    assert SessionConfig(duration=duration).modulation_chance == chance


def test_infinite_total_seconds() -> None:
    config = SessionConfig(duration="infinite")
    assert config.is_infinite
    assert config.total_seconds == 99999.0


def test_config_is_frozen_and_strict() -> None:
    config = SessionConfig()
    with pytest.raises(ValidationError):
        config.base_frequency = 90.0  # type: ignore[misc]
    with pytest.raises(ValidationError):
        SessionConfig(tempo=1)  # type: ignore[call-arg]
