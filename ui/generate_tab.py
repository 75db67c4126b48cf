import asyncio
import os

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QRadioButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from generation.generator import URL_FIELDS
from generation.stores import ARTISTS
from renderer.core.models import TEMPLATE_TYPES
from ui.locales import available_languages, ensure_language, format_message, get_section


class GenerateTab(QWidget):
    """Pick an artist and a template, then render locally or generate + upload."""

    cardGenerated = Signal(str)
    languageChanged = Signal(str)

    ARTIST_COLUMNS = ("username", "status", "idcard_url", "certificate_url", "id")

    def __init__(self, services, runner, parent=None, error_notifier=None):
        super().__init__(parent)
        self.services = services
        self.runner = runner
        self.error_notifier = error_notifier
        self.artists = []
        self.templates = []

        self.language = ensure_language("en")
        self.strings: dict = {}
        self.available_languages = available_languages()

        layout = QVBoxLayout()

        self.artist_table = QTableWidget(0, len(self.ARTIST_COLUMNS))
        self.artist_table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.artist_table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.artist_table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.artist_table.horizontalHeader().setStretchLastSection(True)
        layout.addWidget(self.artist_table)

        row = QHBoxLayout()
        self.type_combo = QComboBox()
        self.type_combo.addItems(TEMPLATE_TYPES)
        self.type_combo.currentIndexChanged.connect(self.load_templates)
        row.addWidget(self.type_combo)
        self.template_combo = QComboBox()
        row.addWidget(self.template_combo, 1)
        self.reload_button = QPushButton()
        self.reload_button.clicked.connect(self.reload)
        row.addWidget(self.reload_button)
        layout.addLayout(row)

        self.export_dir = QLineEdit()
        self.export_dir.setText("export")
        self.choose_btn = QPushButton()
        self.choose_btn.clicked.connect(self.choose_export_folder)
        export_row = QHBoxLayout()
        export_row.addWidget(self.export_dir, 1)
        export_row.addWidget(self.choose_btn)
        layout.addLayout(export_row)

        actions = QHBoxLayout()
        self.render_button = QPushButton()
        self.render_button.clicked.connect(self.render_local)
        actions.addWidget(self.render_button)
        self.generate_button = QPushButton()
        self.generate_button.clicked.connect(self.generate)
        actions.addWidget(self.generate_button)
        actions.addStretch(1)
        layout.addLayout(actions)

        self.result_label = QLabel()
        self.result_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        layout.addWidget(self.result_label)
        self.preview_label = QLabel()
        self.preview_label.setAlignment(Qt.AlignCenter)
        self.preview_label.setMinimumHeight(240)
        layout.addWidget(self.preview_label, 1)

        self.language_box = QGroupBox()
        language_layout = QHBoxLayout()
        self.language_buttons: dict[str, QRadioButton] = {}
        for code in sorted(self.available_languages):
            button = QRadioButton()
            button.toggled.connect(lambda checked, code=code: self._on_language_toggle(code, checked))
            self.language_buttons[code] = button
            language_layout.addWidget(button)
        self.language_box.setLayout(language_layout)
        layout.addWidget(self.language_box)

        self.setLayout(layout)
        self.set_language(self.language)

    # ───────────────────────────────────────────────
    # Data
    # ───────────────────────────────────────────────
    def reload(self):
        self.runner.submit(self.services.records.list_records(ARTISTS), on_done=self.show_artists, on_error=self._failed)
        self.load_templates()

    def show_artists(self, artists):
        self.artists = list(artists)
        self.artist_table.setRowCount(len(self.artists))
        for r, artist in enumerate(self.artists):
            for c, key in enumerate(self.ARTIST_COLUMNS):
                self.artist_table.setItem(r, c, QTableWidgetItem(str(artist.get(key) or "")))
        self.artist_table.resizeColumnsToContents()

    def load_templates(self):
        self.runner.submit(
            self.services.templates.list_templates(self.type_combo.currentText()),
            on_done=self.show_templates,
            on_error=self._failed,
        )

    def show_templates(self, templates):
        self.templates = list(templates)
        self.template_combo.clear()
        for t in self.templates:
            self.template_combo.addItem(t.name, t.id)

    def choose_export_folder(self):
        folder = QFileDialog.getExistingDirectory(self, self.strings.get("choose_folder", ""))
        if folder:
            self.export_dir.setText(folder)

    def get_export_dir(self) -> str:
        return self.export_dir.text().strip()

    def _selection(self):
        row = self.artist_table.currentRow()
        template_id = self.template_combo.currentData()
        if row < 0 or row >= len(self.artists) or not template_id:
            self._emit_error(
                self.strings.get("error_title", ""),
                self.strings.get("select_first", ""),
                level="warning",
            )
            return None
        return self.type_combo.currentText(), template_id, str(self.artists[row]["id"])

    # ───────────────────────────────────────────────
    # Actions
    # ───────────────────────────────────────────────
    def render_local(self):
        selection = self._selection()
        if selection is None:
            return
        template_type, template_id, artist_id = selection
        export_dir = self.get_export_dir() or "export"
        path = os.path.join(export_dir, f"{template_type}_{artist_id}.png")

        async def _render():
            image = await self.services.generator.render(template_type, template_id, artist_id)
            os.makedirs(export_dir, exist_ok=True)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, image.save, path)
            return path

        self._set_busy(True)
        self.runner.submit(_render(), on_done=self._rendered, on_error=self._failed)

    def _rendered(self, path):
        self._set_busy(False)
        self._show_preview(path)
        self.result_label.setText(path)
        self._emit_error(
            self.strings.get("done_title", ""),
            format_message(self.strings, "rendered_message", path=path),
            level="info",
        )

    def generate(self):
        selection = self._selection()
        if selection is None:
            return
        template_type, template_id, artist_id = selection
        self._set_busy(True)
        self.runner.submit(
            self.services.generator.generate(template_type, template_id, artist_id),
            on_done=lambda url: self._generated(template_type, artist_id, url),
            on_error=self._failed,
        )

    def _generated(self, template_type, artist_id, url):
        self._set_busy(False)
        self.result_label.setText(url)
        for artist in self.artists:
            if str(artist.get("id")) == artist_id:
                artist[URL_FIELDS[template_type]] = url
        self.show_artists(self.artists)
        self._emit_error(
            self.strings.get("done_title", ""),
            format_message(self.strings, "generated_message", url=url),
            level="info",
        )
        self.cardGenerated.emit(url)

    def _failed(self, message):
        self._set_busy(False)
        self._emit_error(self.strings.get("error_title", ""), message)

    def _show_preview(self, path):
        pixmap = QPixmap(path)
        if not pixmap.isNull():
            self.preview_label.setPixmap(
                pixmap.scaled(480, 320, Qt.KeepAspectRatio, Qt.SmoothTransformation)
            )

    def _set_busy(self, busy: bool):
        self.render_button.setEnabled(not busy)
        self.generate_button.setEnabled(not busy)

    def set_language(self, language: str):
        language = ensure_language(language)
        self.language = language
        strings = get_section(language, "generate_tab")
        self.strings = strings
        self.artist_table.setHorizontalHeaderLabels([strings.get(c, c) for c in self.ARTIST_COLUMNS])
        self.reload_button.setText(strings.get("reload", ""))
        self.choose_btn.setText(strings.get("choose_folder", ""))
        self.render_button.setText(strings.get("render_local", ""))
        self.generate_button.setText(strings.get("generate", ""))
        self.export_dir.setPlaceholderText(strings.get("directory_placeholder", ""))
        self.language_box.setTitle(strings.get("language_label", ""))

        language_labels = strings.get("languages", self.available_languages)
        for code, button in self.language_buttons.items():
            button.blockSignals(True)
            button.setText(language_labels.get(code, self.available_languages.get(code, code)))
            button.setChecked(code == language)
            button.blockSignals(False)

    def _on_language_toggle(self, selected_language: str, checked: bool):
        if not checked:
            return
        selected_language = ensure_language(selected_language)
        if selected_language != self.language:
            self.set_language(selected_language)
            self.languageChanged.emit(selected_language)

    def _emit_error(self, title: str, message: str, level: str = "error"):
        if self.error_notifier:
            self.error_notifier.emit_error(title, message, level)
