"""
EQ Template Creator – desktop app that analyses a voice sample with Gemini
and turns the result into an equalizer preset.

Entry point: creates the Qt application, loads config, sets up logging,
and launches the main window.
"""

import logging
import sys

from PySide6.QtWidgets import QApplication
from PySide6.QtCore import Qt

from eqcreator.settings.config import AppConfig
from eqcreator.ui.main_window import MainWindow

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def main():
    # High-DPI scaling (Qt6 enables this by default, but be explicit)
    QApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )

    config = AppConfig()
    configure_logging(config.log_level)

    app = QApplication(sys.argv)
    app.setApplicationName("EQ Template Creator")
    app.setOrganizationName("EQTemplateCreator")
    app.setStyleSheet(_STYLESHEET)

    window = MainWindow(config)
    window.show()

    sys.exit(app.exec())


_STYLESHEET = """
QMainWindow {
    background-color: #f5f5f5;
}
QTableWidget {
    background: white;
    alternate-background-color: #f9f9f9;
    gridline-color: #e0e0e0;
    selection-background-color: #0078d7;
    selection-color: white;
}
QHeaderView::section {
    background-color: #e8e8e8;
    padding: 4px;
    border: 1px solid #ccc;
    font-weight: bold;
}
QPushButton {
    padding: 6px 14px;
    border: 1px solid #aaa;
    border-radius: 3px;
    background: #f0f0f0;
}
QPushButton:hover {
    background: #e0e0e0;
}
QPushButton:pressed {
    background: #d0d0d0;
}
QPushButton:disabled {
    color: #999;
}
QListWidget {
    background: white;
    border: 1px solid #ccc;
}
QProgressBar {
    border: 1px solid #ccc;
    border-radius: 3px;
    height: 10px;
}
QProgressBar::chunk {
    background: #0078d7;
}
"""


if __name__ == "__main__":
    main()
