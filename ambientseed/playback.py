from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

import numpy as np

from .errors import PlaybackError
from .events import NoteEvent
from .synth import FADE_FLOOR, SAMPLE_RATE, FloatArray, render_with_room

_LOGGER = logging.getLogger("ambientseed.playback")

DEFAULT_BLOCKSIZE = 1024


def _load_sounddevice() -> Any:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        raise PlaybackError(
            "Live playback requires sounddevice (pip install 'ambientseed[playback]'). "
            "Use `ambientseed export` to render to a file instead."
        ) from exc
    return sd_module


class StreamingMixer:
    """Mixes pre-rendered notes into a running stereo output stream.

    Also serves as the scheduler's clock: ``now()`` counts frames actually
    handed to the device, and resets to zero when the stream is closed.
    """

    def __init__(
        self,
        *,
        sample_rate: int = SAMPLE_RATE,
        blocksize: int = DEFAULT_BLOCKSIZE,
        device: int | str | None = None,
    ) -> None:
        self._sample_rate = sample_rate
        self._blocksize = blocksize
        self._device = device
        self._lock = threading.Lock()
        self._frame = 0
        self._notes: list[tuple[int, FloatArray]] = []
        self._fade: tuple[int, int] | None = None
        self._stream: Any = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def now(self) -> float:
        with self._lock:
            return self._frame / self._sample_rate

    def open(self) -> None:
        if self._stream is not None:
            return
        sd = _load_sounddevice()
        try:
            stream = sd.OutputStream(
                samplerate=self._sample_rate,
                channels=2,
                dtype="float32",
                blocksize=self._blocksize,
                device=self._device,
                callback=self._callback,
            )
            stream.start()
        except sd.PortAudioError as exc:
            raise PlaybackError(f"could not open output device: {exc}") from exc
        self._stream = stream
        _LOGGER.debug("Output stream opened at %d Hz", self._sample_rate)

    def close(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is not None:
            stream.stop()
            stream.close()
            _LOGGER.debug("Output stream closed")
        with self._lock:
            self._frame = 0
            self._notes.clear()
            self._fade = None

    def schedule(self, samples: FloatArray, start_time: float) -> None:
        start = int(round(start_time * self._sample_rate))
        with self._lock:
            if start < self._frame:
                # Late notes play from the current position, not from the top.
                samples = samples[self._frame - start :]
                start = self._frame
            if len(samples):
                self._notes.append((start, samples))

    def fade_out(self, seconds: float) -> None:
        with self._lock:
            if self._fade is None:
                self._fade = (self._frame, max(1, int(seconds * self._sample_rate)))

    def mix(self, frames: int) -> FloatArray:
        """Pull the next ``frames`` of stereo output and advance the clock."""
        with self._lock:
            start = self._frame
            end = start + frames
            out = np.zeros((frames, 2), dtype=np.float64)
            remaining: list[tuple[int, FloatArray]] = []
            for note_start, samples in self._notes:
                note_end = note_start + len(samples)
                lo, hi = max(start, note_start), min(end, note_end)
                if lo < hi:
                    out[lo - start : hi - start] += samples[lo - note_start : hi - note_start]
                if note_end > end:
                    remaining.append((note_start, samples))
            self._notes = remaining
            if self._fade is not None:
                fade_start, fade_length = self._fade
                position = np.arange(start, end, dtype=np.float64) - fade_start
                gain = np.where(
                    position < 0,
                    1.0,
                    np.where(position < fade_length, FADE_FLOOR ** (position / fade_length), 0.0),
                )
                out *= gain[:, None]
            self._frame = end
        return out

    def _callback(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            _LOGGER.debug("Output stream status: %s", status)
        outdata[:] = np.clip(self.mix(frames), -1.0, 1.0).astype(np.float32)


class DeviceRenderer:
    """Tone renderer that plays through the default sound device.

    ``render`` only opens the stream and queues the note; synthesis runs on a
    single voice worker so the scheduler's tick never waits on a convolution.
    Work queued before a ``release`` is dropped.
    """

    def __init__(self, mixer: StreamingMixer | None = None) -> None:
        self.mixer = mixer or StreamingMixer()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ambientseed-voice")
        self._lock = threading.Lock()
        self._generation = 0
        self._pending: set[Future[None]] = set()

    def render(self, event: NoteEvent, *, mix_level: float) -> None:
        self.mixer.open()
        with self._lock:
            generation = self._generation
            future = self._executor.submit(self._voice, event, mix_level, generation)
            self._pending.add(future)
        future.add_done_callback(self._settle)

    def _voice(self, event: NoteEvent, mix_level: float, generation: int) -> None:
        if generation != self._generation:
            return
        samples = render_with_room(event, mix_level, self.mixer.sample_rate)
        with self._lock:
            if generation != self._generation:
                return
            self.mixer.schedule(samples, event.start_time)

    def _settle(self, future: Future[None]) -> None:
        with self._lock:
            self._pending.discard(future)
        error = None if future.cancelled() else future.exception()
        if error is not None:
            _LOGGER.warning("Voice rendering failed: %s", error, exc_info=error)

    def flush(self, timeout: float | None = None) -> None:
        """Block until every queued note has been synthesised."""
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def fade_out(self, seconds: float, *, at: float) -> None:
        _ = at
        self.mixer.fade_out(seconds)

    def release(self) -> None:
        with self._lock:
            self._generation += 1
            self.mixer.close()

    def shutdown(self) -> None:
        self.release()
        self._executor.shutdown(wait=True, cancel_futures=True)
