"""
Audio decoding – turns a recorded/uploaded byte blob into linear PCM.

Requires: numpy, pydub (+ ffmpeg on the system PATH for anything that is
not plain WAV).
"""

import io
import logging
import mimetypes
import os
from typing import NamedTuple

import numpy as np
from pydub import AudioSegment

logger = logging.getLogger(__name__)

# MIME type -> container name understood by ffmpeg/pydub
_MIME_FORMATS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mp4": "mp4",
    "audio/x-m4a": "mp4",
    "audio/m4a": "mp4",
    "audio/aac": "aac",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
}

# Audio extensions the platform mimetypes table may not know (or maps to video/*)
_EXTRA_EXTENSIONS = {
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
    ".opus": "audio/ogg",
    ".oga": "audio/ogg",
    ".weba": "audio/webm",
}


class DecodeError(Exception):
    """Raised when a byte blob cannot be decoded as audio."""


class AudioBuffer(NamedTuple):
    """Decoded PCM audio: float32 samples shaped (channels, frames)."""

    channels: np.ndarray
    sample_rate: int

    @property
    def frame_count(self) -> int:
        return int(self.channels.shape[1])

    @property
    def channel_count(self) -> int:
        return int(self.channels.shape[0])

    @property
    def duration(self) -> float:
        """Length in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / self.sample_rate

    def mono(self) -> np.ndarray:
        """Down-mix all channels to a single channel."""
        return self.channels.mean(axis=0).astype(np.float32)


def container_for_mime(mime_type: str) -> str | None:
    """Return the pydub format name for a MIME type, or None to let ffmpeg probe."""
    base = (mime_type or "").split(";", 1)[0].strip().lower()
    return _MIME_FORMATS.get(base)


def sniff_container(data: bytes) -> str | None:
    """Recognise a few containers from their magic bytes."""
    if data[:4] == b"RIFF" and data[8:12] == b"WAVE":
        return "wav"
    if data[:4] == b"OggS":
        return "ogg"
    if data[:4] == b"fLaC":
        return "flac"
    if data[:4] == b"\x1a\x45\xdf\xa3":
        return "webm"
    if data[:3] == b"ID3" or data[:2] in (b"\xff\xfb", b"\xff\xf3", b"\xff\xf2"):
        return "mp3"
    return None


def guess_mime_type(path: str) -> str | None:
    """MIME type for an uploaded file, by extension."""
    ext = os.path.splitext(path)[1].lower()
    if ext in _EXTRA_EXTENSIONS:
        return _EXTRA_EXTENSIONS[ext]
    mime, _ = mimetypes.guess_type(path)
    return mime


class PydubDecoder:
    """Decodes audio blobs with pydub into float32 PCM."""

    def decode(self, data: bytes, mime_type: str = "") -> AudioBuffer:
        if not data:
            raise DecodeError("empty audio data")

        fmt = container_for_mime(mime_type) or sniff_container(data)
        try:
            segment = AudioSegment.from_file(io.BytesIO(data), format=fmt)
        except Exception as e:
            raise DecodeError(f"cannot decode {mime_type or 'audio'}: {e}") from e

        if segment.frame_rate <= 0 or segment.frame_count() == 0:
            raise DecodeError("decoded audio contains no frames")

        return _segment_to_buffer(segment)


def _segment_to_buffer(segment: AudioSegment) -> AudioBuffer:
    """Convert interleaved integer samples to a (channels, frames) float array."""
    width = segment.sample_width
    if width == 1:
        # 8-bit PCM is unsigned
        raw = np.frombuffer(segment.raw_data, dtype=np.uint8).astype(np.float32)
        samples = (raw - 128.0) / 128.0
    elif width in (2, 4):
        dtype = np.int16 if width == 2 else np.int32
        raw = np.frombuffer(segment.raw_data, dtype=dtype).astype(np.float32)
        samples = raw / float(2 ** (8 * width - 1))
    else:
        # 24-bit: let pydub widen it to 32-bit first
        return _segment_to_buffer(segment.set_sample_width(4))

    channels = samples.reshape(-1, segment.channels).T.copy()
    logger.debug(
        "Decoded %d frames, %d channel(s) at %d Hz",
        channels.shape[1], channels.shape[0], segment.frame_rate,
    )
    return AudioBuffer(channels=channels, sample_rate=int(segment.frame_rate))
