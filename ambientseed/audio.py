from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidConfigError
from .synth import SAMPLE_RATE

FloatArray = NDArray[np.float32]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | Sequence[Sequence[float]]

CHANNELS = 2
WAV_SUBTYPE = "PCM_16"


def ensure_audio_contract(audio: AudioNumbers) -> FloatArray:
    """Normalize dtype/range/shape to float32 stereo frames in [-1, 1]."""
    frames: FloatArray = np.asarray(audio, dtype=np.float32)
    match frames.ndim:
        case 1:
            frames = np.repeat(frames[:, None], CHANNELS, axis=1)
        case 2 if frames.shape[1] == CHANNELS:
            pass
        case 2 if frames.shape[1] == 1:
            frames = np.repeat(frames, CHANNELS, axis=1)
        case _:
            raise InvalidConfigError(
                f"audio must be mono or stereo frames, got shape {frames.shape}"
            )
    if frames.size == 0:
        return frames
    if not np.all(np.isfinite(frames)):
        raise InvalidConfigError("audio contains non-finite samples")
    peak = float(np.max(np.abs(frames)))
    if peak > 1.0:
        frames = frames / peak
    return frames


def write_wav(
    path: str | Path,
    audio: AudioNumbers,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write 16-bit stereo PCM; the encoder handles the integer conversion."""
    if sample_rate <= 0:
        raise InvalidConfigError("sample_rate must be positive")
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    frames = ensure_audio_contract(audio)
    sf.write(target, frames, sample_rate, subtype=WAV_SUBTYPE)
    return target
