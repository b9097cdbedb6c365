"""
Offline audio processing graph – a small Web-Audio style context with a
buffer source node and an FFT frequency analyser node.

Nothing here talks to a sound card: the analyser pulls the source's output
for the current context time directly, so "playing" a buffer into it is
silent by construction.

    ctx = AudioContext()
    src = ctx.create_buffer_source()
    src.buffer = buffer
    analyser = ctx.create_analyser()
    src.connect(analyser)
    src.start(0, offset, duration)
    ...
    levels = analyser.get_byte_frequency_data()
    ctx.close()
"""

import logging
import time
from typing import Callable, Optional

import numpy as np

from eqcreator.audio.decoder import AudioBuffer

logger = logging.getLogger(__name__)

FFT_SIZE = 2048
MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 32768
SMOOTHING_TIME_CONSTANT = 0.8
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0
EPS = 1e-12


class AudioContextError(Exception):
    """Raised when an audio context cannot be created or is misused."""


def blackman_window(n: int) -> np.ndarray:
    """Return the periodic Blackman window of length ``n`` as ``float32``."""
    k = np.arange(n) / n
    return (
        0.42 - 0.5 * np.cos(2.0 * np.pi * k) + 0.08 * np.cos(4.0 * np.pi * k)
    ).astype(np.float32)


class AudioContext:
    """
    Owns the clock and the lifetime of one processing graph.

    state is "running" until close() is called, then "closed". Nodes
    cannot be created on a closed context and closing twice is an error.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._origin = clock()
        self._closed_at: Optional[float] = None
        self._sources: list["AudioBufferSource"] = []

    @property
    def state(self) -> str:
        return "closed" if self._closed_at is not None else "running"

    @property
    def current_time(self) -> float:
        """Seconds since the context was created (frozen once closed)."""
        if self._closed_at is not None:
            return self._closed_at
        return self._clock() - self._origin

    def create_buffer_source(self) -> "AudioBufferSource":
        self._check_open()
        source = AudioBufferSource(self)
        self._sources.append(source)
        return source

    def create_analyser(self) -> "FrequencyAnalyser":
        self._check_open()
        return FrequencyAnalyser(self)

    def close(self):
        """Release the graph. Raises AudioContextError if already closed."""
        if self._closed_at is not None:
            raise AudioContextError("audio context is already closed")
        self._closed_at = self._clock() - self._origin
        for source in self._sources:
            source._release()
        self._sources.clear()
        logger.debug("Audio context closed at t=%.3fs", self._closed_at)

    def _check_open(self):
        if self._closed_at is not None:
            raise AudioContextError("audio context is closed")


class AudioBufferSource:
    """One-shot playback of an AudioBuffer, scheduled on the context clock."""

    def __init__(self, context: AudioContext):
        self.context = context
        self.buffer: Optional[AudioBuffer] = None
        self._mono: Optional[np.ndarray] = None
        self._start_time: Optional[float] = None
        self._stop_time: Optional[float] = None
        self._offset = 0.0
        self._duration: Optional[float] = None

    @property
    def playing(self) -> bool:
        if self._start_time is None:
            return False
        now = self.context.current_time
        if self._stop_time is not None and now >= self._stop_time:
            return False
        return now < self._start_time + self._play_length()

    def connect(self, node: "FrequencyAnalyser") -> "FrequencyAnalyser":
        node._inputs.append(self)
        return node

    def start(self, when: float = 0.0, offset: float = 0.0,
              duration: Optional[float] = None):
        """
        Begin playback at context time ``when`` (or now, if already past),
        reading the buffer from ``offset`` seconds for at most ``duration``.
        """
        if self.buffer is None:
            raise AudioContextError("buffer source has no buffer")
        if self._start_time is not None:
            raise AudioContextError("buffer source can only be started once")
        self.context._check_open()

        self._start_time = max(when, self.context.current_time)
        self._offset = max(0.0, min(offset, self.buffer.duration))
        self._duration = None if duration is None else max(0.0, duration)
        self._mono = self.buffer.mono()

    def stop(self, when: float = 0.0):
        if self._start_time is None:
            raise AudioContextError("buffer source was never started")
        if self._stop_time is None:
            self._stop_time = max(when, self.context.current_time)

    def render(self, end_time: float, frames: int) -> np.ndarray:
        """
        Return the ``frames`` output samples that end at context time
        ``end_time``. Silence before start, after stop, and past the
        buffer/duration end.
        """
        out = np.zeros(frames, dtype=np.float32)
        if self._start_time is None or self._mono is None:
            return out

        sr = self.buffer.sample_rate
        elapsed_end = int(round((end_time - self._start_time) * sr))
        played = np.arange(elapsed_end - frames, elapsed_end)

        limit = int(round(self._play_length() * sr))
        if self._stop_time is not None:
            limit = min(limit, int(round((self._stop_time - self._start_time) * sr)))

        src_idx = played + int(round(self._offset * sr))
        valid = (played >= 0) & (played < limit) & (src_idx < len(self._mono))
        out[valid] = self._mono[src_idx[valid]]
        return out

    def _play_length(self) -> float:
        remaining = self.buffer.duration - self._offset
        if self._duration is None:
            return remaining
        return min(remaining, self._duration)

    def _release(self):
        if self._start_time is not None and self._stop_time is None:
            self._stop_time = self.context.current_time
        self._mono = None


class FrequencyAnalyser:
    """
    FFT analyser node with Web-Audio compatible byte output.

    Each read takes the most recent ``fft_size`` samples of the summed
    mono down-mix of its inputs, applies a Blackman window, smooths the
    magnitude spectrum against the previous read and maps
    [min_decibels, max_decibels] onto 0..255.
    """

    def __init__(self, context: AudioContext):
        self.context = context
        self._inputs: list[AudioBufferSource] = []
        self.smoothing_time_constant = SMOOTHING_TIME_CONSTANT
        self.min_decibels = MIN_DECIBELS
        self.max_decibels = MAX_DECIBELS
        self._fft_size = FFT_SIZE
        self._window = blackman_window(FFT_SIZE)
        self._previous = np.zeros(FFT_SIZE // 2, dtype=np.float64)

    @property
    def fft_size(self) -> int:
        return self._fft_size

    @fft_size.setter
    def fft_size(self, size: int):
        size = int(size)
        if size < MIN_FFT_SIZE or size > MAX_FFT_SIZE or size & (size - 1):
            raise ValueError(
                f"fft_size must be a power of two in [{MIN_FFT_SIZE}, {MAX_FFT_SIZE}], got {size}"
            )
        self._fft_size = size
        self._window = blackman_window(size)
        self._previous = np.zeros(size // 2, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self._fft_size // 2

    def get_float_frequency_data(self) -> np.ndarray:
        """Current spectrum in dB, one value per bin."""
        block = self._capture_block()
        spectrum = np.fft.rfft(block * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self._fft_size

        k = self.smoothing_time_constant
        self._previous = k * self._previous + (1.0 - k) * magnitude
        return 20.0 * np.log10(np.maximum(self._previous, EPS))

    def get_byte_frequency_data(self) -> np.ndarray:
        """Current spectrum scaled to unsigned bytes, one value per bin."""
        db = self.get_float_frequency_data()
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (db - self.min_decibels))
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def _capture_block(self) -> np.ndarray:
        now = self.context.current_time
        block = np.zeros(self._fft_size, dtype=np.float32)
        for source in self._inputs:
            block += source.render(now, self._fft_size)
        return block
