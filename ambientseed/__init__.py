from __future__ import annotations

from .config import DurationToken, HarmonyTier, SessionConfig
from .engine import EngineState, Step, advance, begin_session
from .errors import (
    AmbientSeedError,
    ConcurrentExportError,
    InvalidConfigError,
    InvariantViolationError,
    PlaybackError,
    PrematureExportError,
)
from .events import NoteEvent, VoiceHints, VoiceShape
from .logging_utils import configure_logging as _configure_logging
from .mirror import ExportResult, OfflineExporter, render_session, snapshot_session
from .player import Player
from .rng import SeededRNG, derive_seed, hash32
from .scheduler import CollectingRenderer, LiveScheduler, SchedulerStatus, ToneRenderer
from .session import SessionSnapshot, open_session

__all__ = [
    "AmbientSeedError",
    "CollectingRenderer",
    "ConcurrentExportError",
    "DurationToken",
    "EngineState",
    "ExportResult",
    "HarmonyTier",
    "InvalidConfigError",
    "InvariantViolationError",
    "LiveScheduler",
    "NoteEvent",
    "OfflineExporter",
    "PlaybackError",
    "Player",
    "PrematureExportError",
    "SchedulerStatus",
    "SeededRNG",
    "SessionConfig",
    "SessionSnapshot",
    "Step",
    "ToneRenderer",
    "VoiceHints",
    "VoiceShape",
    "advance",
    "begin_session",
    "derive_seed",
    "hash32",
    "open_session",
    "render_session",
    "snapshot_session",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
