from __future__ import annotations

import threading

import numpy as np
import pytest

from conftest import sine_buffer, spin, wait_for_signal, wav_bytes
from eqcreator.audio.capture import (
    DECODE_ERROR_MESSAGE, SILENT_MESSAGE, FrequencySnapshot, SnapshotCapturer,
    snapshot_from_levels,
)
from eqcreator.audio.context import AudioContext, AudioContextError
from eqcreator.audio.decoder import AudioBuffer, DecodeError, PydubDecoder


class FakeDecoder:
    def __init__(self, buffer=None, error=None, gate: threading.Event | None = None):
        self.buffer = buffer
        self.error = error
        self.gate = gate
        self.calls = []

    def decode(self, data, mime_type=""):
        self.calls.append((data, mime_type))
        if self.gate is not None:
            self.gate.wait(2.0)
        if self.error is not None:
            raise self.error
        return self.buffer


class SpyContext(AudioContext):
    created: list["SpyContext"] = []

    def __init__(self):
        super().__init__()
        self.close_calls = 0
        self.sources = []
        SpyContext.created.append(self)

    def create_buffer_source(self):
        source = super().create_buffer_source()
        self.sources.append(source)
        return source

    def close(self):
        self.close_calls += 1
        super().close()


@pytest.fixture(autouse=True)
def _reset_spies():
    SpyContext.created.clear()
    yield
    SpyContext.created.clear()


def _capturer(decoder, **kwargs):
    return SnapshotCapturer(decoder=decoder, context_factory=SpyContext, **kwargs)


def _wait_until(predicate, timeout_ms: int = 2000):
    waited = 0
    while not predicate() and waited < timeout_ms:
        spin(10)
        waited += 10
    return predicate()


def test_snapshot_from_levels_passes_data_through():
    levels = np.arange(1024) % 256
    snap = snapshot_from_levels(levels, 44100)
    assert snap.has_data
    assert snap.sample_rate == 44100
    assert snap.message is None
    assert snap.magnitudes.dtype == np.uint8


def test_snapshot_from_levels_maps_zeros_to_silence():
    snap = snapshot_from_levels(np.zeros(1024, dtype=np.uint8), 44100)
    assert not snap.has_data
    assert len(snap.magnitudes) == 0
    assert snap.sample_rate == 0
    assert snap.message == SILENT_MESSAGE


def test_capture_produces_full_snapshot(qapp):
    capturer = _capturer(FakeDecoder(sine_buffer(freq=1000.0, sample_rate=48000)))
    capturer.capture(b"audio", "audio/wav")
    assert capturer.busy

    received = wait_for_signal(capturer.snapshot_ready)
    assert len(received) == 1
    snap = received[0]
    assert isinstance(snap, FrequencySnapshot)
    assert len(snap.magnitudes) == 1024
    assert snap.sample_rate == 48000
    assert snap.message is None
    assert abs(int(np.argmax(snap.magnitudes)) - 1000 * 2048 / 48000) <= 1

    ctx = SpyContext.created[0]
    assert ctx.state == "closed"
    assert ctx.close_calls == 1
    assert not capturer.busy


def test_decode_failure_yields_error_snapshot(qapp):
    capturer = _capturer(FakeDecoder(error=DecodeError("bad container")))
    capturer.capture(b"garbage", "audio/webm")

    received = wait_for_signal(capturer.snapshot_ready)
    snap = received[0]
    assert len(snap.magnitudes) == 0
    assert snap.sample_rate == 0
    assert snap.message == DECODE_ERROR_MESSAGE
    assert SpyContext.created[0].close_calls == 1


def test_unexpected_decoder_exception_is_treated_as_decode_failure(qapp):
    capturer = _capturer(FakeDecoder(error=RuntimeError("codec crashed")))
    capturer.capture(b"garbage", "audio/ogg")
    snap = wait_for_signal(capturer.snapshot_ready)[0]
    assert snap.message == DECODE_ERROR_MESSAGE
    assert SpyContext.created[0].close_calls == 1


def test_real_decoder_on_undecodable_bytes(qapp):
    capturer = _capturer(PydubDecoder())
    capturer.capture(b"definitely not audio", "audio/wav")
    snap = wait_for_signal(capturer.snapshot_ready, timeout_ms=10000)[0]
    assert len(snap.magnitudes) == 0
    assert snap.sample_rate == 0
    assert snap.message == DECODE_ERROR_MESSAGE


def test_real_decoder_on_wav_sample(qapp):
    t = np.arange(44100) / 44100
    data = wav_bytes(0.5 * np.sin(2 * np.pi * 440 * t))
    capturer = _capturer(PydubDecoder())
    capturer.capture(data, "audio/wav")
    snap = wait_for_signal(capturer.snapshot_ready)[0]
    assert snap.has_data
    assert snap.sample_rate == 44100
    assert abs(int(np.argmax(snap.magnitudes)) - 440 * 2048 / 44100) <= 1


def test_silent_sample_yields_silence_snapshot(qapp):
    silent = AudioBuffer(np.zeros((1, 44100), dtype=np.float32), 44100)
    capturer = _capturer(FakeDecoder(silent))
    capturer.capture(b"quiet", "audio/wav")

    snap = wait_for_signal(capturer.snapshot_ready)[0]
    assert len(snap.magnitudes) == 0
    assert snap.sample_rate == 0
    assert snap.message == SILENT_MESSAGE
    assert SpyContext.created[0].close_calls == 1


def test_very_short_clip_is_reported_silent(qapp):
    capturer = _capturer(FakeDecoder(sine_buffer(duration=0.05)))
    capturer.capture(b"blip", "audio/wav")
    snap = wait_for_signal(capturer.snapshot_ready)[0]
    assert snap.message == SILENT_MESSAGE


def test_dispose_during_decode_drops_result(qapp):
    gate = threading.Event()
    capturer = _capturer(FakeDecoder(sine_buffer(), gate=gate))
    received = []
    capturer.snapshot_ready.connect(received.append)

    capturer.capture(b"audio", "audio/wav")
    capturer.dispose()
    gate.set()
    spin(300)

    assert received == []
    ctx = SpyContext.created[0]
    assert ctx.close_calls == 1
    assert ctx.sources == []


def test_dispose_before_snapshot_timer_skips_silently(qapp):
    capturer = _capturer(FakeDecoder(sine_buffer()), delay_ms=400)
    received = []
    capturer.snapshot_ready.connect(received.append)

    capturer.capture(b"audio", "audio/wav")
    ctx = SpyContext.created[0]
    assert _wait_until(lambda: len(ctx.sources) == 1)
    capturer.dispose()
    spin(600)

    assert received == []
    assert ctx.close_calls == 1
    assert not capturer.busy


def test_dispose_is_idempotent(qapp):
    capturer = _capturer(FakeDecoder(sine_buffer()))
    capturer.dispose()
    capturer.capture(b"audio", "audio/wav")
    capturer.dispose()
    capturer.dispose()
    spin(200)
    assert SpyContext.created[0].close_calls == 1


def test_new_capture_replaces_previous_one(qapp):
    decoder = FakeDecoder(sine_buffer())
    capturer = _capturer(decoder)
    received = []
    capturer.snapshot_ready.connect(received.append)

    capturer.capture(b"first", "audio/wav")
    capturer.capture(b"second", "audio/wav")
    assert _wait_until(lambda: len(received) == 1)
    spin(300)

    assert len(received) == 1
    first, second = SpyContext.created
    assert first.close_calls == 1
    assert second.close_calls == 1
    assert first.sources == []


def test_context_creation_failure_propagates(qapp):
    def broken_factory():
        raise RuntimeError("audio disabled by host")

    capturer = SnapshotCapturer(decoder=FakeDecoder(sine_buffer()),
                                context_factory=broken_factory)
    with pytest.raises(AudioContextError):
        capturer.capture(b"audio", "audio/wav")
    assert not capturer.busy


def test_delay_is_configurable(qapp):
    capturer = _capturer(FakeDecoder(sine_buffer()))
    capturer.delay_ms = -5
    assert capturer.delay_ms == 0
    capturer.delay_ms = 250
    assert capturer.delay_ms == 250
