"""
Frequency snapshot chart – a PySide6 widget that captures one spectral
snapshot of the submitted sample and draws it as log-frequency bars,
coloured green/red where the EQ preset boosts/cuts and blue elsewhere.
"""

import logging
from typing import Optional, Sequence

from PySide6.QtWidgets import QWidget, QSizePolicy
from PySide6.QtCore import Qt, QPointF, QRectF, Slot
from PySide6.QtGui import QPainter, QColor, QPen, QFont

from eqcreator.audio.capture import FrequencySnapshot, SnapshotCapturer
from eqcreator.audio.context import AudioContextError
from eqcreator.chart.layout import BOOST, CUT, NEUTRAL, ChartLayout, layout

logger = logging.getLogger(__name__)

# Colors
COL_BACKGROUND = QColor(17, 24, 39)
COL_AXIS = QColor("#9ca3af")
COL_MESSAGE = QColor("#e5e7eb")
TONE_COLORS = {
    BOOST: QColor("#22c55e"),
    CUT: QColor("#ef4444"),
    NEUTRAL: QColor("#00BFFF"),
}

TICK_SIZE = 6
LABEL_PX = 10


class FrequencyChart(QWidget):
    """
    Snapshot bar chart of one audio sample.

    set_input() starts a capture (replacing any running one); the chart is
    re-laid out on every paint so resizes and new EQ settings show up
    immediately. clear() cancels the capture and blanks the chart. Hiding
    the chart mid-capture cancels it; showing it again starts over.
    """

    def __init__(self, capturer: Optional[SnapshotCapturer] = None, parent=None):
        super().__init__(parent)
        self.setMinimumHeight(256)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self._capturer = capturer or SnapshotCapturer(parent=self)
        self._capturer.snapshot_ready.connect(self._on_snapshot)

        self._snapshot: Optional[FrequencySnapshot] = None
        self._adjustments: tuple = ()
        self._input: Optional[tuple[bytes, str]] = None
        self._interrupted = False

    # ── Public API ───────────────────────────────────────────────────

    @property
    def capturer(self) -> SnapshotCapturer:
        return self._capturer

    @property
    def snapshot(self) -> Optional[FrequencySnapshot]:
        """Last captured snapshot, or None while capturing / before any input."""
        return self._snapshot

    def set_input(self, audio_bytes: bytes, mime_type: str, adjustments: Sequence):
        self._adjustments = tuple(adjustments)
        self._input = (audio_bytes, mime_type)
        self._start_capture()

    def set_adjustments(self, adjustments: Sequence):
        self._adjustments = tuple(adjustments)
        self.update()

    def set_snapshot(self, snapshot: Optional[FrequencySnapshot]):
        self._interrupted = False
        self._snapshot = snapshot
        self.update()

    def clear(self):
        self._capturer.dispose()
        self._input = None
        self._interrupted = False
        self._snapshot = None
        self._adjustments = ()
        self.update()

    def current_layout(self) -> Optional[ChartLayout]:
        if self._snapshot is None:
            return None
        return layout(self._snapshot, self._adjustments, self.width(), self.height())

    def _start_capture(self):
        self._interrupted = False
        self._snapshot = None
        audio_bytes, mime_type = self._input
        try:
            self._capturer.capture(audio_bytes, mime_type)
        except AudioContextError as e:
            logger.error("Cannot start snapshot capture: %s", e)
            self._snapshot = FrequencySnapshot.empty()
        self.update()

    # ── Slots ────────────────────────────────────────────────────────

    @Slot(object)
    def _on_snapshot(self, snapshot: FrequencySnapshot):
        self._snapshot = snapshot
        self.update()

    # ── Events ───────────────────────────────────────────────────────

    def hideEvent(self, event):
        # Minimising the window sends spontaneous hides; keep capturing then
        if not event.spontaneous() and self._capturer.busy:
            self._capturer.dispose()
            self._interrupted = True
        super().hideEvent(event)

    def showEvent(self, event):
        super().showEvent(event)
        if self._interrupted and self._input is not None:
            self._start_capture()

    # ── Paint ────────────────────────────────────────────────────────

    def paintEvent(self, event):
        p = QPainter(self)
        p.fillRect(self.rect(), COL_BACKGROUND)

        chart = self.current_layout()
        if chart is None:
            p.end()
            return

        p.translate(chart.margins.left, chart.margins.top)

        for bar in chart.bars:
            p.fillRect(QRectF(bar.x, bar.y, bar.width, bar.height),
                       TONE_COLORS[bar.tone])

        font = QFont()
        font.setPixelSize(LABEL_PX)
        p.setFont(font)
        self._paint_axes(p, chart)

        if chart.message:
            font.setPixelSize(LABEL_PX + 4)
            p.setFont(font)
            p.setPen(QPen(COL_MESSAGE))
            p.drawText(QRectF(0, 0, chart.plot_width, chart.plot_height),
                       Qt.AlignmentFlag.AlignCenter, chart.message)
        p.end()

    def _paint_axes(self, p: QPainter, chart: ChartLayout):
        w, h = chart.plot_width, chart.plot_height
        p.setPen(QPen(COL_AXIS))

        # X axis along the bottom of the plot
        p.drawLine(QPointF(0, h), QPointF(w, h))
        for tick in chart.x_ticks:
            p.drawLine(QPointF(tick.position, h), QPointF(tick.position, h + TICK_SIZE))
            if tick.label:
                p.drawText(QRectF(tick.position - 20, h + TICK_SIZE, 40, LABEL_PX + 4),
                           Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop,
                           tick.label)

        # Y axis on the left
        p.drawLine(QPointF(0, 0), QPointF(0, h))
        for tick in chart.y_ticks:
            p.drawLine(QPointF(-TICK_SIZE, tick.position), QPointF(0, tick.position))
            p.drawText(QRectF(-TICK_SIZE - 34, tick.position - LABEL_PX, 32, 2 * LABEL_PX),
                       Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter,
                       tick.label)

        # Titles
        p.drawText(QRectF(0, h + chart.margins.bottom - LABEL_PX - 8, w, LABEL_PX + 6),
                   Qt.AlignmentFlag.AlignHCenter, chart.x_title)
        p.save()
        p.translate(-chart.margins.left + 4, h / 2)
        p.rotate(-90)
        p.drawText(QRectF(-h / 2, 0, h, LABEL_PX + 6),
                   Qt.AlignmentFlag.AlignHCenter, chart.y_title)
        p.restore()
