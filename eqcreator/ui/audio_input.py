"""
Audio input page – record a voice sample from the microphone or upload an
audio file, preview it, then submit it for analysis.

Recording uses Qt Multimedia (QMediaCaptureSession + QMediaRecorder) and
writes to a temporary directory that is removed on reset/close.
"""

import logging
import os
import tempfile

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QFileDialog,
    QMessageBox, QFrame,
)
from PySide6.QtCore import Qt, QTimer, QUrl, Signal
from PySide6.QtMultimedia import (
    QAudioInput, QMediaCaptureSession, QMediaFormat, QMediaRecorder,
)

from eqcreator.audio.decoder import guess_mime_type
from eqcreator.audio.player import AudioPlayer
from eqcreator.settings.config import AppConfig

logger = logging.getLogger(__name__)

# Container preference for recordings, first supported wins
_RECORD_FORMATS = [
    (QMediaFormat.FileFormat.WebM, QMediaFormat.AudioCodec.Opus, "audio/webm", ".webm"),
    (QMediaFormat.FileFormat.Mpeg4Audio, QMediaFormat.AudioCodec.AAC, "audio/mp4", ".m4a"),
    (QMediaFormat.FileFormat.Wave, QMediaFormat.AudioCodec.Wave, "audio/wav", ".wav"),
]


def format_time(seconds: int) -> str:
    """Seconds as mm:ss."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


def pick_record_format():
    """Return (QMediaFormat, mime_type, extension) for the best supported container."""
    supported = QMediaFormat().supportedFileFormats(QMediaFormat.ConversionMode.Encode)
    for file_format, codec, mime, ext in _RECORD_FORMATS:
        if file_format in supported:
            fmt = QMediaFormat(file_format)
            fmt.setAudioCodec(codec)
            return fmt, mime, ext
    file_format, codec, mime, ext = _RECORD_FORMATS[-1]
    fmt = QMediaFormat(file_format)
    fmt.setAudioCodec(codec)
    return fmt, mime, ext


class AudioInputPanel(QWidget):
    """
    Record/upload panel.

    Signals:
        audio_submitted(bytes, str) - sample bytes and MIME type.
    """

    audio_submitted = Signal(bytes, str)

    def __init__(self, config: AppConfig, parent=None):
        super().__init__(parent)
        self.config = config

        self._audio_bytes: bytes | None = None
        self._audio_path = ""
        self._mime_type = "audio/webm"
        self._record_seconds = 0
        self._position_ms = 0
        self._processing = False
        self._discard_recording = False
        self._tmp_dir: tempfile.TemporaryDirectory | None = None

        # Recording pipeline
        self._session = QMediaCaptureSession(self)
        self._audio_input = QAudioInput(self)
        self._session.setAudioInput(self._audio_input)
        self._recorder = QMediaRecorder(self)
        self._session.setRecorder(self._recorder)
        self._recorder.recorderStateChanged.connect(self._on_recorder_state)
        self._recorder.errorOccurred.connect(self._on_recorder_error)

        self._record_timer = QTimer(self)
        self._record_timer.setInterval(1000)
        self._record_timer.timeout.connect(self._on_record_tick)

        self.player = AudioPlayer(self)
        self.player.state_changed.connect(self._on_player_state)
        self.player.position_changed.connect(self._on_player_position)
        self.player.duration_changed.connect(lambda _ms: self._update_time_label())
        self.player.error_occurred.connect(
            lambda msg: QMessageBox.warning(self, "Playback Error", msg)
        )

        self._build_ui()
        self._update_time_label()
        self._refresh()

    def _build_ui(self):
        layout = QVBoxLayout(self)

        title = QLabel("Submit Your Voice Sample")
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        title.setStyleSheet("font-size: 20px; font-weight: bold;")
        layout.addWidget(title)
        minutes = self.config.max_record_seconds // 60 or 1
        hint = QLabel(f"Record up to {minutes} minutes of audio or upload a file.")
        hint.setAlignment(Qt.AlignmentFlag.AlignCenter)
        hint.setStyleSheet("color: #888;")
        layout.addWidget(hint)

        # ── Record / upload row ──────────────────────────────────
        row = QHBoxLayout()
        self._record_btn = QPushButton("Record Voice")
        self._record_btn.clicked.connect(self._toggle_recording)
        row.addWidget(self._record_btn, 1)
        row.addWidget(QLabel("OR"))
        self._upload_btn = QPushButton("Upload File")
        self._upload_btn.clicked.connect(self._upload)
        row.addWidget(self._upload_btn, 1)
        layout.addLayout(row)

        # ── Preview ──────────────────────────────────────────────
        self._preview = QFrame()
        preview_layout = QVBoxLayout(self._preview)
        preview_layout.addWidget(QLabel("Your Audio Sample:"))
        self._sample_label = QLabel()
        self._sample_label.setStyleSheet("color: #666;")
        preview_layout.addWidget(self._sample_label)

        btn_row = QHBoxLayout()
        self._play_btn = QPushButton("Play")
        self._play_btn.clicked.connect(self.player.toggle_play_pause)
        btn_row.addWidget(self._play_btn)
        self._time_label = QLabel()
        self._time_label.setStyleSheet("color: #666;")
        btn_row.addWidget(self._time_label)
        btn_row.addStretch()
        self._submit_btn = QPushButton("Generate EQ")
        self._submit_btn.setStyleSheet("font-weight: bold;")
        self._submit_btn.clicked.connect(self._submit)
        btn_row.addWidget(self._submit_btn)
        self._reset_btn = QPushButton("Reset")
        self._reset_btn.clicked.connect(self.reset)
        btn_row.addWidget(self._reset_btn)
        preview_layout.addLayout(btn_row)

        layout.addWidget(self._preview)
        layout.addStretch()

    # ── Public API ───────────────────────────────────────────────────

    @property
    def is_recording(self) -> bool:
        return self._recorder.recorderState() == QMediaRecorder.RecorderState.RecordingState

    @property
    def has_sample(self) -> bool:
        return self._audio_bytes is not None

    def set_processing(self, processing: bool):
        self._processing = processing
        self._refresh()

    def set_sample(self, data: bytes, mime_type: str, path: str = ""):
        """Use ``data`` as the current sample (``path`` enables preview)."""
        self._audio_bytes = data
        self._mime_type = mime_type
        self._audio_path = path
        if path:
            self.player.load(path)
            self._sample_label.setText(
                f"{os.path.basename(path)}  ({mime_type}, {len(data) // 1024} KB)"
            )
        self._refresh()

    def reset(self):
        """Drop the current sample and stop any recording in progress."""
        self._record_timer.stop()
        self.player.unload()
        self._audio_bytes = None
        self._audio_path = ""
        self._record_seconds = 0
        self._sample_label.clear()
        if self.is_recording:
            # Temp dir is removed once the recorder has let go of the file
            self._discard_recording = True
            self._recorder.stop()
        else:
            self._cleanup_tmp()
        self._refresh()

    def shutdown(self):
        self.reset()

    # ── Recording ────────────────────────────────────────────────────

    def _toggle_recording(self):
        if self.is_recording:
            self._stop_recording()
        else:
            self._start_recording()

    def _start_recording(self):
        self.reset()
        fmt, mime, ext = pick_record_format()
        self._tmp_dir = tempfile.TemporaryDirectory(prefix="eqcreator-")
        path = os.path.join(self._tmp_dir.name, f"recording{ext}")

        self._mime_type = mime
        self._recorder.setMediaFormat(fmt)
        self._recorder.setOutputLocation(QUrl.fromLocalFile(path))
        self._record_seconds = 0
        self._recorder.record()
        self._record_timer.start()
        logger.info("Recording to %s (%s)", path, mime)
        self._refresh()

    def _stop_recording(self):
        self._record_timer.stop()
        self._recorder.stop()

    def _on_record_tick(self):
        self._record_seconds += 1
        if self._record_seconds >= self.config.max_record_seconds:
            logger.info("Recording reached the %ds limit", self.config.max_record_seconds)
            self._stop_recording()
        self._refresh()

    def _on_recorder_state(self, state):
        if state != QMediaRecorder.RecorderState.StoppedState:
            self._refresh()
            return
        self._record_timer.stop()
        if self._discard_recording:
            self._discard_recording = False
            self._cleanup_tmp()
            self._refresh()
            return
        path = self._recorder.actualLocation().toLocalFile()
        if path and os.path.exists(path):
            with open(path, "rb") as f:
                data = f.read()
            self.set_sample(data, self._mime_type, path)
        self._refresh()

    def _on_recorder_error(self, error, error_string=""):
        self._record_timer.stop()
        msg = self._recorder.errorString() or str(error)
        logger.error("Recording failed: %s", msg)
        QMessageBox.warning(
            self, "Recording Error",
            f"Could not access microphone. Please check your system permissions.\n\n{msg}",
        )
        self._refresh()

    # ── Upload / submit ──────────────────────────────────────────────

    def _upload(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Select Audio File", self.config.last_directory,
            "Audio Files (*.wav *.mp3 *.m4a *.mp4 *.webm *.ogg *.opus *.flac *.aac);;All Files (*)",
        )
        if not path:
            return
        mime = guess_mime_type(path)
        if not mime or not mime.startswith("audio/"):
            QMessageBox.warning(self, "Invalid File", "Please upload a valid audio file.")
            return
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            QMessageBox.critical(self, "Upload Error", f"Failed to read file:\n{e}")
            return
        self.config.last_directory = os.path.dirname(path)
        self.set_sample(data, mime, path)

    def _submit(self):
        if self._audio_bytes:
            self.player.stop()
            self.audio_submitted.emit(self._audio_bytes, self._mime_type)

    # ── Helpers ──────────────────────────────────────────────────────

    def _on_player_state(self, state: str):
        self._play_btn.setText("Pause" if state == "playing" else "Play")

    def _on_player_position(self, position_ms: int):
        self._position_ms = position_ms
        self._update_time_label()

    def _update_time_label(self):
        self._time_label.setText(
            f"{format_time(self._position_ms // 1000)} / "
            f"{format_time(self.player.duration // 1000)}"
        )

    def _cleanup_tmp(self):
        if self._tmp_dir is not None:
            self._tmp_dir.cleanup()
            self._tmp_dir = None

    def _refresh(self):
        recording = self.is_recording
        if recording:
            self._record_btn.setText(f"Stop Recording ({format_time(self._record_seconds)})")
        else:
            self._record_btn.setText("Record Voice")
        self._record_btn.setEnabled(recording or (not self.has_sample and not self._processing))
        self._upload_btn.setEnabled(not recording and not self.has_sample)

        self._preview.setVisible(self.has_sample)
        self._submit_btn.setEnabled(self.has_sample and not self._processing)
        self._submit_btn.setText("Processing..." if self._processing else "Generate EQ")
        self._reset_btn.setEnabled(not self._processing)
