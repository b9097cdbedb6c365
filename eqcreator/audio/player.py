"""
Sample preview playback using Qt6 Multimedia (QMediaPlayer).

Lets the user listen to the recorded or uploaded sample before submitting it.
"""

from PySide6.QtCore import QObject, Signal, QUrl, QTimer
from PySide6.QtMultimedia import QMediaPlayer, QAudioOutput


class AudioPlayer(QObject):
    """
    Wraps QMediaPlayer for previewing a local audio file.

    Signals:
        position_changed(int)   - Current playback position in ms.
        duration_changed(int)   - Total duration in ms.
        state_changed(str)      - "playing", "paused", or "stopped".
        error_occurred(str)     - Playback error description.
    """

    position_changed = Signal(int)
    duration_changed = Signal(int)
    state_changed = Signal(str)
    error_occurred = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)

        self._player = QMediaPlayer(self)
        self._audio_output = QAudioOutput(self)
        self._player.setAudioOutput(self._audio_output)

        # Position polling timer
        self._pos_timer = QTimer(self)
        self._pos_timer.setInterval(100)
        self._pos_timer.timeout.connect(self._poll_position)

        self._player.durationChanged.connect(self.duration_changed)
        self._player.playbackStateChanged.connect(self._on_state_changed)
        self._player.errorOccurred.connect(self._on_error)
        self._player.mediaStatusChanged.connect(self._on_media_status)

        self._last_emitted_pos = -1

    # ── Public API ───────────────────────────────────────────────

    def load(self, filepath: str):
        """Load an audio file for playback."""
        self._player.stop()
        self._player.setSource(QUrl.fromLocalFile(filepath))
        self._last_emitted_pos = -1

    def unload(self):
        """Stop and release the current source (e.g. before deleting the file)."""
        self.stop()
        self._player.setSource(QUrl())

    def play(self):
        self._player.play()
        self._pos_timer.start()

    def pause(self):
        self._player.pause()
        self._pos_timer.stop()

    def stop(self):
        self._player.stop()
        self._pos_timer.stop()
        self._last_emitted_pos = -1
        self.position_changed.emit(0)

    def toggle_play_pause(self):
        if self.is_playing:
            self.pause()
        else:
            self.play()

    @property
    def is_playing(self) -> bool:
        return self._player.playbackState() == QMediaPlayer.PlaybackState.PlayingState

    @property
    def duration(self) -> int:
        """Total duration in milliseconds."""
        return self._player.duration()

    # ── Internal ─────────────────────────────────────────────────

    def _poll_position(self):
        pos = self._player.position()
        if pos != self._last_emitted_pos:
            self._last_emitted_pos = pos
            self.position_changed.emit(pos)

    def _on_state_changed(self, state):
        if state == QMediaPlayer.PlaybackState.PlayingState:
            self.state_changed.emit("playing")
            self._pos_timer.start()
        elif state == QMediaPlayer.PlaybackState.PausedState:
            self.state_changed.emit("paused")
            self._pos_timer.stop()
        else:
            self.state_changed.emit("stopped")
            self._pos_timer.stop()

    def _on_media_status(self, status):
        if status == QMediaPlayer.MediaStatus.EndOfMedia:
            self._pos_timer.stop()
            self._player.setPosition(0)

    def _on_error(self, error, error_string=""):
        msg = self._player.errorString() or str(error)
        self.error_occurred.emit(msg)
