from __future__ import annotations

import io
import os
import wave

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import numpy as np
import pytest
from PySide6.QtCore import QEventLoop, QTimer
from PySide6.QtWidgets import QApplication

from eqcreator.audio.decoder import AudioBuffer


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


class ManualClock:
    """Deterministic stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


def sine_buffer(freq: float = 1000.0, sample_rate: int = 44100,
                duration: float = 1.0, amplitude: float = 0.5,
                channels: int = 1) -> AudioBuffer:
    t = np.arange(int(sample_rate * duration)) / sample_rate
    mono = (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    return AudioBuffer(np.tile(mono, (channels, 1)), sample_rate)


def wav_bytes(samples: np.ndarray, sample_rate: int = 44100) -> bytes:
    """Encode float mono samples as 16-bit PCM WAV."""
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype("<i2")
    out = io.BytesIO()
    with wave.open(out, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(sample_rate)
        w.writeframes(pcm.tobytes())
    return out.getvalue()


def wait_for_signal(signal, timeout_ms: int = 3000) -> list:
    """Spin a local event loop until ``signal`` fires once or the timeout hits."""
    received: list = []
    loop = QEventLoop()

    def _on_emit(*args):
        received.append(args[0] if len(args) == 1 else args)
        loop.quit()

    signal.connect(_on_emit)
    QTimer.singleShot(timeout_ms, loop.quit)
    loop.exec()
    signal.disconnect(_on_emit)
    return received


def spin(ms: int):
    """Process events for ``ms`` milliseconds."""
    loop = QEventLoop()
    QTimer.singleShot(ms, loop.quit)
    loop.exec()
