from __future__ import annotations

import numpy as np
import pytest

from conftest import wav_bytes
from eqcreator.audio.decoder import (
    AudioBuffer, DecodeError, PydubDecoder, container_for_mime, guess_mime_type,
    sniff_container,
)


def test_decode_wav_to_float_pcm():
    t = np.arange(22050) / 22050
    data = wav_bytes(0.5 * np.sin(2 * np.pi * 300 * t), sample_rate=22050)

    buffer = PydubDecoder().decode(data, "audio/wav")

    assert buffer.sample_rate == 22050
    assert buffer.channel_count == 1
    assert buffer.frame_count == 22050
    assert buffer.duration == pytest.approx(1.0)
    assert buffer.channels.dtype == np.float32
    assert np.max(np.abs(buffer.channels)) == pytest.approx(0.5, abs=1e-3)


def test_decode_without_mime_type_still_reads_wav():
    data = wav_bytes(np.full(1000, 0.25), sample_rate=8000)
    buffer = PydubDecoder().decode(data)
    assert buffer.sample_rate == 8000
    assert buffer.frame_count == 1000


def test_decode_empty_bytes_fails():
    with pytest.raises(DecodeError):
        PydubDecoder().decode(b"", "audio/wav")


def test_decode_garbage_fails():
    with pytest.raises(DecodeError):
        PydubDecoder().decode(b"\x00\x01not-a-wav-file" * 10, "audio/wav")


def test_mono_downmix_averages_channels():
    channels = np.array([[1.0, 0.0, -1.0], [0.0, 0.0, 1.0]], dtype=np.float32)
    buffer = AudioBuffer(channels, 3)
    np.testing.assert_allclose(buffer.mono(), [0.5, 0.0, 0.0])
    assert buffer.duration == pytest.approx(1.0)


def test_zero_sample_rate_has_zero_duration():
    assert AudioBuffer(np.zeros((1, 10), dtype=np.float32), 0).duration == 0.0


@pytest.mark.parametrize("mime, fmt", [
    ("audio/webm", "webm"),
    ("audio/webm;codecs=opus", "webm"),
    ("AUDIO/MP4", "mp4"),
    ("audio/mpeg", "mp3"),
    ("audio/x-wav", "wav"),
    ("audio/unknown", None),
    ("", None),
])
def test_container_for_mime(mime, fmt):
    assert container_for_mime(mime) == fmt


def test_guess_mime_type():
    assert guess_mime_type("voice.m4a") == "audio/mp4"
    assert guess_mime_type("voice.weba") == "audio/webm"
    assert guess_mime_type("take1.WAV").startswith("audio/")
    assert guess_mime_type("take1.mp3") == "audio/mpeg"
    assert not (guess_mime_type("notes.txt") or "").startswith("audio/")


@pytest.mark.parametrize("head, fmt", [
    (b"RIFF\x24\x00\x00\x00WAVEfmt ", "wav"),
    (b"OggS\x00\x02", "ogg"),
    (b"fLaC\x00\x00", "flac"),
    (b"\x1a\x45\xdf\xa3\x9f", "webm"),
    (b"ID3\x04\x00", "mp3"),
    (b"\xff\xfb\x90\x00", "mp3"),
    (b"hello world", None),
])
def test_sniff_container(head, fmt):
    assert sniff_container(head) == fmt
