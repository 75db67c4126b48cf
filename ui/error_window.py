import logging
from collections import deque
from datetime import datetime

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QBrush, QColor, QGuiApplication
from PySide6.QtWidgets import (
    QComboBox,
    QHBoxLayout,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ui.locales import ensure_language, get_section

LEVELS = ("info", "warning", "error", "critical")


class ErrorLogWidget(QWidget):
    """Notifications and forwarded log records, newest last, optionally filtered by level."""

    MAX_ROWS = 500
    LEVEL_COLORS = {
        "critical": QColor(200, 40, 40),
        "error": QColor(200, 40, 40),
        "warning": QColor(190, 130, 0),
    }

    def __init__(self, parent=None):
        super().__init__(parent)
        self.language = ensure_language("en")
        self.strings: dict = {}
        # (timestamp, level, title, message)
        self.entries = deque(maxlen=self.MAX_ROWS)

        layout = QVBoxLayout()

        self.table = QTableWidget(0, 4)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.itemSelectionChanged.connect(self.update_copy_button_state)
        layout.addWidget(self.table)

        controls = QHBoxLayout()
        self.level_filter = QComboBox()
        self.level_filter.addItem("", None)
        for level in LEVELS:
            self.level_filter.addItem(level, level)
        self.level_filter.currentIndexChanged.connect(self.refresh)
        controls.addWidget(self.level_filter)
        self.copy_button = QPushButton()
        self.copy_button.clicked.connect(self.copy_selected)
        controls.addWidget(self.copy_button)
        self.clear_button = QPushButton()
        self.clear_button.clicked.connect(self.clear_entries)
        controls.addWidget(self.clear_button)
        controls.addStretch(1)
        layout.addLayout(controls)

        self.setLayout(layout)
        self.set_language(self.language)

    def set_language(self, language: str):
        self.language = ensure_language(language)
        self.strings = get_section(self.language, "error_log")
        self.table.setHorizontalHeaderLabels(
            [self.strings.get(key, "") for key in ("timestamp", "level", "title", "details")]
        )
        self.level_filter.setItemText(0, self.strings.get("all_levels", ""))
        self.copy_button.setText(self.strings.get("copy", ""))
        self.clear_button.setText(self.strings.get("clear", ""))
        self.update_copy_button_state()

    def _visible(self, entry) -> bool:
        wanted = self.level_filter.currentData()
        if not wanted:
            return True
        # a filter level shows that level and everything more severe
        level = entry[1] if entry[1] in LEVELS else "error"
        return LEVELS.index(level) >= LEVELS.index(wanted)

    def add_entry(self, title: str, message: str, level: str = "error"):
        entry = (datetime.now().strftime("%Y-%m-%d %H:%M:%S"), level, title, message)
        self.entries.append(entry)
        if not self._visible(entry):
            return
        if self.table.rowCount() >= self.MAX_ROWS:
            self.table.removeRow(0)
        self._append_row(entry)
        self.table.resizeColumnsToContents()

    def _append_row(self, entry):
        row = self.table.rowCount()
        self.table.insertRow(row)
        color = self.LEVEL_COLORS.get(entry[1])
        for col, text in enumerate(entry):
            item = QTableWidgetItem(text)
            item.setFlags(item.flags() & ~Qt.ItemIsEditable)
            if color is not None:
                item.setForeground(QBrush(color))
            self.table.setItem(row, col, item)

    def refresh(self):
        self.table.setRowCount(0)
        for entry in self.entries:
            if self._visible(entry):
                self._append_row(entry)
        self.table.resizeColumnsToContents()
        self.update_copy_button_state()

    def clear_entries(self):
        self.entries.clear()
        self.refresh()

    def copy_selected(self):
        rows = sorted({index.row() for index in self.table.selectedIndexes()})
        lines = []
        for row in rows:
            cells = (self.table.item(row, col) for col in range(self.table.columnCount()))
            lines.append(" | ".join(cell.text() for cell in cells if cell is not None and cell.text()))
        if lines:
            QGuiApplication.clipboard().setText("\n".join(lines))

    def update_copy_button_state(self):
        self.copy_button.setEnabled(bool(self.table.selectedIndexes()))


# ───────────────────────────────────────────────
# logging -> error log
# ───────────────────────────────────────────────
class LogBridge(QObject):
    """Carries (logger name, message, level) across threads into the GUI."""

    recordEmitted = Signal(str, str, str)


class QtLogHandler(logging.Handler):
    def __init__(self, bridge: LogBridge, level=logging.WARNING):
        super().__init__(level)
        self.bridge = bridge
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord):
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self.bridge.recordEmitted.emit(record.name, message, record.levelname.lower())


def install_log_bridge(widget: ErrorLogWidget, logger_names=("renderer", "generation", "ui")) -> QtLogHandler:
    bridge = LogBridge(widget)
    bridge.recordEmitted.connect(widget.add_entry)
    handler = QtLogHandler(bridge)
    for name in logger_names:
        logging.getLogger(name).addHandler(handler)
    return handler
