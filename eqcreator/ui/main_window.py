"""
Main application window – switches between the input, processing, results
and error pages, and runs the remote analysis off the UI thread.
"""

import logging
import threading
from typing import Callable

from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QLabel, QPushButton, QStackedWidget,
    QInputDialog, QLineEdit, QProgressBar,
)
from PySide6.QtCore import Qt, Signal, Slot

from eqcreator.analysis.gemini import analyze_audio
from eqcreator.analysis.models import AnalysisError
from eqcreator.settings.config import AppConfig
from eqcreator.ui.audio_input import AudioInputPanel
from eqcreator.ui.results_view import ResultsView

logger = logging.getLogger(__name__)

IDLE = "idle"
PROCESSING = "processing"
SUCCESS = "success"
ERROR = "error"

PROCESSING_MESSAGE = "Gemini is analyzing your voice... this may take a moment."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred during analysis."


class MainWindow(QMainWindow):
    """
    Application shell.

    ``analyzer`` has the signature of analysis.gemini.analyze_audio and is
    called on a worker thread; its result comes back via a queued signal.
    """

    _analysis_finished = Signal(int, object, object)

    def __init__(self, config: AppConfig, analyzer: Callable = analyze_audio):
        super().__init__()
        self.config = config
        self._analyzer = analyzer

        self.setWindowTitle("EQ Template Creator")
        self.setMinimumSize(800, 600)
        self.resize(960, 760)

        self._status = IDLE
        self._request_id = 0
        self._audio: tuple[bytes, str] | None = None

        self._build_ui()
        self._connect_signals()
        self._set_status(IDLE)

    # ═════════════════════════════════════════════════════════════
    #  UI CONSTRUCTION
    # ═════════════════════════════════════════════════════════════

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(12, 12, 12, 12)

        # ── Menu bar ─────────────────────────────────────────────
        menu_bar = self.menuBar()
        file_menu = menu_bar.addMenu("File")
        file_menu.addAction("Set API Key...", self._edit_api_key)
        file_menu.addSeparator()
        file_menu.addAction("Exit", self.close)

        # ── Header ───────────────────────────────────────────────
        header = QLabel("EQ Template Creator")
        header.setAlignment(Qt.AlignmentFlag.AlignCenter)
        header.setStyleSheet("font-size: 28px; font-weight: bold; color: #0078d7;")
        main_layout.addWidget(header)
        tagline = QLabel("Your Personal AI Audio Engineer")
        tagline.setAlignment(Qt.AlignmentFlag.AlignCenter)
        tagline.setStyleSheet("color: #888;")
        main_layout.addWidget(tagline)

        # ── Pages ────────────────────────────────────────────────
        self._stack = QStackedWidget()

        self.input_panel = AudioInputPanel(self.config)
        self._stack.addWidget(self.input_panel)

        self._processing_page = QWidget()
        proc_layout = QVBoxLayout(self._processing_page)
        proc_layout.addStretch()
        busy = QProgressBar()
        busy.setRange(0, 0)
        proc_layout.addWidget(busy)
        proc_label = QLabel(PROCESSING_MESSAGE)
        proc_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        proc_layout.addWidget(proc_label)
        proc_layout.addStretch()
        self._stack.addWidget(self._processing_page)

        self.results_view = ResultsView(self.config)
        self._stack.addWidget(self.results_view)

        self._error_page = QWidget()
        err_layout = QVBoxLayout(self._error_page)
        err_layout.addStretch()
        err_title = QLabel("Analysis Failed")
        err_title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        err_title.setStyleSheet("font-size: 20px; font-weight: bold; color: #c62828;")
        err_layout.addWidget(err_title)
        self._error_label = QLabel()
        self._error_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._error_label.setWordWrap(True)
        self._error_label.setStyleSheet("color: #c62828;")
        err_layout.addWidget(self._error_label)
        self._retry_btn = QPushButton("Try Again")
        self._retry_btn.clicked.connect(self.reset)
        err_layout.addWidget(self._retry_btn, 0, Qt.AlignmentFlag.AlignCenter)
        err_layout.addStretch()
        self._stack.addWidget(self._error_page)

        main_layout.addWidget(self._stack, 1)

        footer = QLabel("Powered by Google Gemini. For demonstration purposes only.")
        footer.setAlignment(Qt.AlignmentFlag.AlignCenter)
        footer.setStyleSheet("color: #999; font-size: 11px;")
        main_layout.addWidget(footer)

    # ═════════════════════════════════════════════════════════════
    #  SIGNAL WIRING
    # ═════════════════════════════════════════════════════════════

    def _connect_signals(self):
        self.input_panel.audio_submitted.connect(self.submit_audio)
        self.results_view.reset_requested.connect(self.reset)
        self._analysis_finished.connect(self._on_analysis_finished)

    # ═════════════════════════════════════════════════════════════
    #  STATE
    # ═════════════════════════════════════════════════════════════

    @property
    def status(self) -> str:
        return self._status

    @property
    def error_message(self) -> str:
        return self._error_label.text()

    def _set_status(self, status: str):
        self._status = status
        page = {
            IDLE: self.input_panel,
            PROCESSING: self._processing_page,
            SUCCESS: self.results_view,
            ERROR: self._error_page,
        }[status]
        self._stack.setCurrentWidget(page)
        self.input_panel.set_processing(status == PROCESSING)
        logger.debug("Status -> %s", status)

    @Slot(bytes, str)
    def submit_audio(self, data: bytes, mime_type: str):
        """Start analysing a sample; the result arrives asynchronously."""
        self._request_id += 1
        self._audio = (data, mime_type)
        self._error_label.clear()
        self._set_status(PROCESSING)

        thread = threading.Thread(
            target=self._run_analysis,
            args=(self._request_id, data, mime_type),
            daemon=True,
        )
        thread.start()

    def reset(self):
        """Back to the input page with all state cleared."""
        self._request_id += 1   # drop any analysis still in flight
        self.results_view.clear()
        self.input_panel.reset()
        self._audio = None
        self._error_label.clear()
        self._set_status(IDLE)

    # ═════════════════════════════════════════════════════════════
    #  ANALYSIS
    # ═════════════════════════════════════════════════════════════

    def _run_analysis(self, request_id: int, data: bytes, mime_type: str):
        """Worker thread body."""
        try:
            result = self._analyzer(
                data, mime_type,
                api_key=self.config.api_key,
                model=self.config.model,
                timeout=self.config.request_timeout_s,
            )
        except AnalysisError as e:
            self._analysis_finished.emit(request_id, None, str(e))
            return
        except Exception:
            logger.exception("Unexpected analysis failure")
            self._analysis_finished.emit(request_id, None, UNKNOWN_ERROR_MESSAGE)
            return
        self._analysis_finished.emit(request_id, result, None)

    @Slot(int, object, object)
    def _on_analysis_finished(self, request_id: int, result, error):
        if request_id != self._request_id or self._status != PROCESSING:
            logger.debug("Ignoring stale analysis result #%d", request_id)
            return
        if error is not None:
            self._error_label.setText(error)
            self._set_status(ERROR)
            return
        data, mime_type = self._audio
        self.results_view.show_result(result, data, mime_type)
        self._set_status(SUCCESS)

    # ═════════════════════════════════════════════════════════════
    #  MISC
    # ═════════════════════════════════════════════════════════════

    def _edit_api_key(self):
        key, ok = QInputDialog.getText(
            self, "Gemini API Key", "API key:", QLineEdit.EchoMode.Password,
            self.config.get("api_key", ""),
        )
        if ok:
            self.config.api_key = key

    def closeEvent(self, event):
        self._request_id += 1
        self.results_view.clear()
        self.input_panel.shutdown()
        super().closeEvent(event)
