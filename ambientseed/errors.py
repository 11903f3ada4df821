from __future__ import annotations


class AmbientSeedError(Exception):
    """Base error for the ambientseed engine."""


class InvalidConfigError(AmbientSeedError):
    """Raised when a session setting cannot be coerced into a usable value."""


class PrematureExportError(AmbientSeedError):
    """Raised when an export is requested before any session has started."""


class ConcurrentExportError(AmbientSeedError):
    """Raised when an export is requested while another one is rendering."""


class InvariantViolationError(AmbientSeedError):
    """Raised when engine state leaves its bounds; fatal to the session only."""


class PlaybackError(AmbientSeedError):
    """Raised when no live output device can be opened."""
