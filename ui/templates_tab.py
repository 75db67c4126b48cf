import json

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QFileDialog,
    QHBoxLayout,
    QInputDialog,
    QLineEdit,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from generation.stores import import_template, new_template, save_template
from renderer.core.json_loader import TemplateJSONLoader
from renderer.core.models import TEMPLATE_TYPES
from ui.locales import ensure_language, format_message, get_section


class TemplatesTab(QWidget):
    """Template catalogue: filter, create, open in the editor."""

    templateOpened = Signal(object)

    COLUMNS = ("name", "type", "elements", "id")

    def __init__(self, services, runner, parent=None, error_notifier=None):
        super().__init__(parent)
        self.services = services
        self.runner = runner
        self.error_notifier = error_notifier
        self.templates = []

        self.language = ensure_language("en")
        self.strings: dict = {}

        layout = QVBoxLayout()

        filters = QHBoxLayout()
        self.type_combo = QComboBox()
        self.type_combo.addItem("", None)
        for t in TEMPLATE_TYPES:
            self.type_combo.addItem(t, t)
        self.type_combo.currentIndexChanged.connect(self.refresh)
        filters.addWidget(self.type_combo)
        self.name_filter = QLineEdit()
        self.name_filter.returnPressed.connect(self.refresh)
        filters.addWidget(self.name_filter, 1)
        self.refresh_button = QPushButton()
        self.refresh_button.clicked.connect(self.refresh)
        filters.addWidget(self.refresh_button)
        layout.addLayout(filters)

        self.table = QTableWidget(0, len(self.COLUMNS))
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.cellDoubleClicked.connect(lambda row, _col: self.open_row(row))
        layout.addWidget(self.table)

        buttons = QHBoxLayout()
        self.new_button = QPushButton()
        self.new_button.clicked.connect(self.create_template)
        buttons.addWidget(self.new_button)
        self.open_button = QPushButton()
        self.open_button.clicked.connect(lambda: self.open_row(self.table.currentRow()))
        buttons.addWidget(self.open_button)
        self.import_button = QPushButton()
        self.import_button.clicked.connect(self.import_file)
        buttons.addWidget(self.import_button)
        self.export_button = QPushButton()
        self.export_button.clicked.connect(lambda: self.export_row(self.table.currentRow()))
        buttons.addWidget(self.export_button)
        buttons.addStretch(1)
        layout.addLayout(buttons)

        self.setLayout(layout)
        self.set_language(self.language)

    def refresh(self):
        coro = self.services.templates.list_templates(
            self.type_combo.currentData(), self.name_filter.text().strip()
        )
        self.runner.submit(coro, on_done=self.show_templates, on_error=self._failed)

    def show_templates(self, templates):
        self.templates = list(templates)
        self.table.setRowCount(len(self.templates))
        for row, t in enumerate(self.templates):
            values = (t.name, t.type, str(len(t.elements)), t.id)
            for col, value in enumerate(values):
                item = QTableWidgetItem(value)
                item.setFlags(item.flags() & ~Qt.ItemIsEditable)
                self.table.setItem(row, col, item)
        self.table.resizeColumnsToContents()

    def open_row(self, row):
        if 0 <= row < len(self.templates):
            template = self.templates[row]
            # the listing may not carry elements (REST); load the full template
            self.runner.submit(
                self.services.templates.get_template(template.id),
                on_done=self.templateOpened.emit,
                on_error=self._failed,
            )

    def create_template(self):
        name, ok = QInputDialog.getText(self, self.strings.get("new_title", ""), self.strings.get("new_prompt", ""))
        if not ok:
            return
        template = new_template(name.strip(), self.type_combo.currentData() or "id_card")
        self.runner.submit(
            save_template(self.services.templates, template),
            on_done=lambda _: self._created(template),
            on_error=self._failed,
        )

    def _created(self, template):
        self._emit_error(
            self.strings.get("created_title", ""),
            format_message(self.strings, "created_message", name=template.name),
            level="info",
        )
        self.templateOpened.emit(template)
        self.refresh()

    def import_file(self):
        path, _ = QFileDialog.getOpenFileName(self, self.strings.get("import", ""), "", "JSON (*.json)")
        if not path:
            return
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self._emit_error(self.strings.get("error_title", ""), str(e))
            return
        self.runner.submit(
            import_template(self.services.templates, data),
            on_done=self._created,
            on_error=self._failed,
        )

    def export_row(self, row):
        if not 0 <= row < len(self.templates):
            return
        template = self.templates[row]
        path, _ = QFileDialog.getSaveFileName(
            self, self.strings.get("export", ""), f"{template.name}.json", "JSON (*.json)"
        )
        if not path:
            return
        self.runner.submit(
            self.services.templates.get_template(template.id),
            on_done=lambda full: self._write_export(full, path),
            on_error=self._failed,
        )

    def _write_export(self, template, path):
        try:
            TemplateJSONLoader(path).save(template)
        except OSError as e:
            self._emit_error(self.strings.get("error_title", ""), str(e))
            return
        self._emit_error(
            self.strings.get("exported_title", ""),
            format_message(self.strings, "exported_message", path=path),
            level="info",
        )

    def _failed(self, message):
        self._emit_error(self.strings.get("error_title", ""), message)

    def set_language(self, language: str):
        language = ensure_language(language)
        self.language = language
        strings = get_section(language, "templates_tab")
        self.strings = strings
        self.table.setHorizontalHeaderLabels([strings.get(c, c) for c in self.COLUMNS])
        self.type_combo.setItemText(0, strings.get("all_types", ""))
        self.name_filter.setPlaceholderText(strings.get("name_filter", ""))
        self.refresh_button.setText(strings.get("refresh", ""))
        self.new_button.setText(strings.get("new", ""))
        self.open_button.setText(strings.get("open", ""))
        self.import_button.setText(strings.get("import", ""))
        self.export_button.setText(strings.get("export", ""))

    def _emit_error(self, title: str, message: str, level: str = "error"):
        if self.error_notifier:
            self.error_notifier.emit_error(title, message, level)
