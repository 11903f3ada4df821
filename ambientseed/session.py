from __future__ import annotations

import logging
import time

from pydantic import BaseModel, ConfigDict, Field

from .config import SessionConfig
from .density import DriftParams
from .engine import EngineState, begin_session
from .rng import SeededRNG, derive_seed

_LOGGER = logging.getLogger("ambientseed.session")


class SessionSnapshot(BaseModel):
    """Everything needed to replay a session from its first note."""

    seed: int = Field(ge=0, le=0xFFFFFFFF)
    start_state: int = Field(ge=0, le=0xFFFFFFFF)
    config: SessionConfig
    created_at_ms: int
    motif: tuple[int, ...]
    density_base: float
    lfo_rate: float
    lfo_phase: float
    drift_rate_hz: float
    drift_cents: float
    drift_phase: float

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def capture(
        cls,
        *,
        seed: int,
        start_state: int,
        created_at_ms: int,
        state: EngineState,
    ) -> "SessionSnapshot":
        return cls(
            seed=seed,
            start_state=start_state,
            config=state.config,
            created_at_ms=created_at_ms,
            motif=state.motif.snapshot(),
            density_base=state.density.base,
            lfo_rate=state.density.lfo_rate,
            lfo_phase=state.density.lfo_phase,
            drift_rate_hz=state.drift.rate_hz,
            drift_cents=state.drift.cents,
            drift_phase=state.drift.phase,
        )

    @property
    def drift(self) -> DriftParams:
        return DriftParams(
            rate_hz=self.drift_rate_hz, cents=self.drift_cents, phase=self.drift_phase
        )

    def matches(self, state: EngineState) -> bool:
        """True when ``state`` was drawn from this snapshot's start state."""
        return (
            state.config == self.config
            and state.motif.snapshot() == self.motif
            and state.density.base == self.density_base
            and state.density.lfo_rate == self.lfo_rate
            and state.density.lfo_phase == self.lfo_phase
            and state.drift == self.drift
        )


def now_ms() -> int:
    return int(time.time() * 1000)


def open_session(
    config: SessionConfig,
    *,
    timestamp_ms: int | None = None,
) -> tuple[SessionSnapshot, SeededRNG, EngineState]:
    """Seed a fresh RNG, capture its start state and draw the session parameters."""
    created_at_ms = now_ms() if timestamp_ms is None else int(timestamp_ms)
    seed = derive_seed(created_at_ms, config.base_frequency, config.duration)
    rng = SeededRNG(seed)
    start_state = rng.get_state()
    state = begin_session(config, rng)
    snapshot = SessionSnapshot.capture(
        seed=seed,
        start_state=start_state,
        created_at_ms=created_at_ms,
        state=state,
    )
    _LOGGER.info(
        "Session seed %d | density %.3f | drift %.1fc @ %.4fHz | motif %s",
        seed,
        state.density.run,
        state.drift.cents,
        state.drift.rate_hz,
        list(snapshot.motif),
    )
    return snapshot, rng, state
