"""
One-shot spectral snapshot of an audio sample.

SnapshotCapturer decodes the sample on a background thread, plays a short
segment of it into a frequency analyser (never to the speakers) and, a
fixed delay after playback starts, reads a single 1024-bin byte spectrum.

The result is always delivered through ``snapshot_ready`` as a
FrequencySnapshot; decode failures and silent samples come back as an
empty snapshot carrying a diagnostic message instead of an exception.
"""

import functools
import logging
import threading
from typing import Callable, NamedTuple, Optional

import numpy as np
from PySide6.QtCore import QObject, QTimer, Signal, Slot

from eqcreator.audio.context import (
    FFT_SIZE, AudioBufferSource, AudioContext, AudioContextError,
    FrequencyAnalyser,
)
from eqcreator.audio.decoder import AudioBuffer, PydubDecoder

logger = logging.getLogger(__name__)

SNAPSHOT_DELAY_MS = 100   # one settled analyser frame after playback onset
START_OFFSET_S = 0.1
MAX_PLAY_S = 5.0

DECODE_ERROR_MESSAGE = "Error decoding audio file."
SILENT_MESSAGE = "Could not visualize audio: sample may be silent."


class FrequencySnapshot(NamedTuple):
    """
    Byte magnitudes per frequency bin plus the sample rate they came from.

    sample_rate == 0 means there is nothing to draw; ``message`` then says why.
    """

    magnitudes: np.ndarray
    sample_rate: int
    message: Optional[str] = None

    @classmethod
    def empty(cls, message: Optional[str] = None) -> "FrequencySnapshot":
        return cls(np.zeros(0, dtype=np.uint8), 0, message)

    @property
    def has_data(self) -> bool:
        return len(self.magnitudes) > 0 and self.sample_rate > 0


def snapshot_from_levels(levels: np.ndarray, sample_rate: int) -> FrequencySnapshot:
    """Wrap analyser output, mapping an all-zero spectrum to the silent snapshot."""
    levels = np.asarray(levels, dtype=np.uint8)
    if not levels.any():
        return FrequencySnapshot.empty(SILENT_MESSAGE)
    return FrequencySnapshot(levels, int(sample_rate))


class SnapshotCapturer(QObject):
    """
    Owns at most one live AudioContext at a time.

    Signals:
        snapshot_ready(FrequencySnapshot) - capture finished (data or diagnostic).

    capture() disposes of any previous capture first. dispose() closes the
    current context; a decode result or snapshot timer that arrives for a
    closed context is dropped without emitting anything.
    """

    snapshot_ready = Signal(object)
    _decode_finished = Signal(object, object, object)

    def __init__(self, decoder=None,
                 context_factory: Callable[[], AudioContext] = AudioContext,
                 delay_ms: int = SNAPSHOT_DELAY_MS, parent=None):
        super().__init__(parent)
        self._decoder = decoder or PydubDecoder()
        self._context_factory = context_factory
        self._delay_ms = delay_ms
        self._context: Optional[AudioContext] = None
        self._decode_finished.connect(self._on_decoded)

    # ── Public API ───────────────────────────────────────────────

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @delay_ms.setter
    def delay_ms(self, value: int):
        self._delay_ms = max(0, int(value))

    @property
    def busy(self) -> bool:
        """True while a context is open for an in-flight capture."""
        return self._context is not None and self._context.state != "closed"

    def capture(self, data: bytes, mime_type: str = ""):
        """
        Start a snapshot of ``data``. Raises AudioContextError if no audio
        context can be created; everything after that is reported through
        snapshot_ready.
        """
        self.dispose()
        try:
            context = self._context_factory()
        except AudioContextError:
            raise
        except Exception as e:
            raise AudioContextError(f"Cannot create audio context: {e}") from e

        self._context = context
        thread = threading.Thread(
            target=self._decode, args=(context, data, mime_type), daemon=True
        )
        thread.start()

    def dispose(self):
        """Close the live context, if any. Safe to call repeatedly."""
        context = self._context
        self._context = None
        if context is not None and context.state != "closed":
            context.close()
            logger.debug("Snapshot capture disposed")

    # ── Internal ─────────────────────────────────────────────────

    def _decode(self, context: AudioContext, data: bytes, mime_type: str):
        """Runs on the worker thread; hands the result back via a queued signal."""
        try:
            buffer = self._decoder.decode(data, mime_type)
        except Exception as e:
            self._decode_finished.emit(context, None, e)
            return
        self._decode_finished.emit(context, buffer, None)

    @Slot(object, object, object)
    def _on_decoded(self, context: AudioContext, buffer: Optional[AudioBuffer],
                    error: Optional[Exception]):
        if context is not self._context or context.state == "closed":
            logger.debug("Dropping decode result for a disposed capture")
            return

        if error is not None:
            logger.warning("Error decoding audio data: %s", error)
            self._finish(context, FrequencySnapshot.empty(DECODE_ERROR_MESSAGE))
            return

        source = context.create_buffer_source()
        source.buffer = buffer
        analyser = context.create_analyser()
        analyser.fft_size = FFT_SIZE
        source.connect(analyser)

        source.start(0, min(START_OFFSET_S, buffer.duration), MAX_PLAY_S)
        QTimer.singleShot(
            self._delay_ms,
            functools.partial(
                self._take_snapshot, context, source, analyser, buffer.sample_rate
            ),
        )

    def _take_snapshot(self, context: AudioContext, source: AudioBufferSource,
                       analyser: FrequencyAnalyser, sample_rate: int):
        if context.state == "closed":
            return

        levels = analyser.get_byte_frequency_data()
        source.stop()

        snapshot = snapshot_from_levels(levels, sample_rate)
        if not snapshot.has_data:
            logger.warning(
                "Analyser returned no frequency data. The audio might be "
                "silent at the snapshot point."
            )
        self._finish(context, snapshot)

    def _finish(self, context: AudioContext, snapshot: FrequencySnapshot):
        context.close()
        if self._context is context:
            self._context = None
        self.snapshot_ready.emit(snapshot)
