"""Seeded pseudo-random source shared by the live scheduler and the mirror.

Mulberry32 over a 32-bit state, seeded from an FNV-1a hash of the session
parameters. Output is bit-for-bit reproducible from ``(seed, state)``.
"""

from __future__ import annotations

import math
from typing import Protocol

_MASK32 = 0xFFFFFFFF
_FNV_OFFSET_BASIS = 2166136261
_FNV_PRIME = 16777619
_MULBERRY_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296


class RandomSource(Protocol):
    def next(self) -> float: ...


def hash32(text: str) -> int:
    """FNV-1a over the UTF-8 bytes of ``text``."""
    value = _FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & _MASK32
    return value


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


class SeededRNG:
    """Mulberry32 generator with exposed state for exact replay."""

    __slots__ = ("_state",)

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK32

    def next(self) -> float:
        self._state = (self._state + _MULBERRY_INCREMENT) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_POW_32

    def get_state(self) -> int:
        return self._state

    def set_state(self, state: int) -> None:
        self._state = state & _MASK32

    def clone(self) -> "SeededRNG":
        return SeededRNG(self._state)

    def __repr__(self) -> str:
        return f"SeededRNG(state={self._state})"


def seed_string(timestamp_ms: int, base_frequency: float, duration: str) -> str:
    # Half-up rounding, not round-half-even.
    cents = math.floor(base_frequency * 100 + 0.5)
    return f"{int(timestamp_ms)}|{cents}|{duration}"


def derive_seed(timestamp_ms: int, base_frequency: float, duration: str) -> int:
    return hash32(seed_string(timestamp_ms, base_frequency, duration))
