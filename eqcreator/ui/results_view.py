"""
Results page – vocal profile, generated EQ table, frequency snapshot chart,
and the export buttons (Audacity XML download, JSON to clipboard).
"""

import logging
import os

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QTableWidget,
    QTableWidgetItem, QHeaderView, QListWidget, QFileDialog, QMessageBox,
    QApplication, QAbstractItemView,
)
from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QColor

from eqcreator.analysis.models import AnalysisResult
from eqcreator.preset.export import (
    DEFAULT_XML_FILENAME, format_gain, gain_action, save_audacity_xml, to_json,
)
from eqcreator.settings.config import AppConfig
from eqcreator.ui.frequency_chart import FrequencyChart

logger = logging.getLogger(__name__)

ACTION_COLORS = {
    "Boost": QColor("#4ade80"),
    "Cut": QColor("#f87171"),
    "Neutral": QColor("#9ca3af"),
}


class ResultsView(QWidget):
    """
    Shows one analysis result.

    Signals:
        reset_requested() - "Analyze Another" clicked.
    """

    reset_requested = Signal()

    def __init__(self, config: AppConfig, parent=None):
        super().__init__(parent)
        self.config = config
        self._result: AnalysisResult | None = None
        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout(self)

        title = QLabel("Analysis Complete")
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        title.setStyleSheet("font-size: 22px; font-weight: bold;")
        layout.addWidget(title)

        columns = QHBoxLayout()

        # ── Vocal profile ────────────────────────────────────────
        left = QVBoxLayout()
        left.addWidget(self._heading("Vocal Profile"))
        self._description = QLabel()
        self._description.setWordWrap(True)
        left.addWidget(self._description)
        left.addWidget(self._heading("Key Characteristics"))
        self._characteristics = QListWidget()
        left.addWidget(self._characteristics)
        columns.addLayout(left, 1)

        # ── EQ table ─────────────────────────────────────────────
        right = QVBoxLayout()
        right.addWidget(self._heading("Generated EQ Preset"))
        self._table = QTableWidget(0, 3)
        self._table.setHorizontalHeaderLabels(["Frequency", "Gain (dB)", "Action"])
        self._table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self._table.verticalHeader().setVisible(False)
        self._table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self._table.setAlternatingRowColors(True)
        right.addWidget(self._table)
        columns.addLayout(right, 1)

        layout.addLayout(columns)

        # ── Chart ────────────────────────────────────────────────
        layout.addWidget(self._heading("Vocal Frequency Snapshot"))
        self.chart = FrequencyChart()
        self.chart.capturer.delay_ms = self.config.snapshot_delay_ms
        layout.addWidget(self.chart, 1)

        # ── Buttons ──────────────────────────────────────────────
        btn_row = QHBoxLayout()
        btn_row.addStretch()
        again_btn = QPushButton("Analyze Another")
        again_btn.clicked.connect(self.reset_requested)
        btn_row.addWidget(again_btn)
        self._xml_btn = QPushButton("Download Audacity XML")
        self._xml_btn.clicked.connect(self._download_xml)
        btn_row.addWidget(self._xml_btn)
        self._json_btn = QPushButton("Copy as JSON")
        self._json_btn.clicked.connect(self._copy_json)
        btn_row.addWidget(self._json_btn)
        btn_row.addStretch()
        layout.addLayout(btn_row)

    @staticmethod
    def _heading(text: str) -> QLabel:
        label = QLabel(text)
        label.setStyleSheet("font-size: 15px; font-weight: bold;")
        return label

    # ── Public API ───────────────────────────────────────────────────

    def show_result(self, result: AnalysisResult, audio_bytes: bytes, mime_type: str):
        self._result = result
        profile = result.vocal_profile

        self._description.setText(profile.description)
        self._characteristics.clear()
        self._characteristics.addItem(f"Fundamental Range: {profile.fundamental_range}")
        self._characteristics.addItems(profile.key_characteristics)

        self._table.setRowCount(len(result.eq_preset))
        for row, point in enumerate(result.eq_preset):
            self._table.setItem(row, 0, QTableWidgetItem(f"{point.frequency:g} Hz"))
            action = gain_action(point.gain)
            gain_item = QTableWidgetItem(format_gain(point.gain))
            gain_item.setForeground(ACTION_COLORS[action])
            self._table.setItem(row, 1, gain_item)
            action_item = QTableWidgetItem(action)
            action_item.setForeground(ACTION_COLORS[action])
            self._table.setItem(row, 2, action_item)

        self._xml_btn.setEnabled(bool(result.audacity_xml))
        self.chart.set_input(audio_bytes, mime_type, result.eq_preset)

    def clear(self):
        self.chart.clear()
        self._result = None
        self._description.clear()
        self._characteristics.clear()
        self._table.setRowCount(0)

    # ── Export ───────────────────────────────────────────────────────

    def _download_xml(self):
        if self._result is None:
            return
        start = os.path.join(self.config.last_directory or os.path.expanduser("~"),
                             DEFAULT_XML_FILENAME)
        path, _ = QFileDialog.getSaveFileName(
            self, "Save Audacity EQ Preset", start, "XML Files (*.xml);;All Files (*)"
        )
        if not path:
            return
        try:
            save_audacity_xml(self._result.audacity_xml, path)
        except OSError as e:
            logger.error("Failed to save preset to %s: %s", path, e)
            QMessageBox.critical(self, "Save Error", f"Failed to save preset:\n{e}")
            return
        self.config.last_directory = os.path.dirname(path)
        logger.info("Saved Audacity preset to %s", path)

    def _copy_json(self):
        if self._result is None:
            return
        QApplication.clipboard().setText(
            to_json(self._result.vocal_profile, self._result.eq_preset)
        )
        QMessageBox.information(self, "Copied", "EQ settings copied to clipboard as JSON!")
