import asyncio
import os

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QPushButton,
    QScrollArea,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from generation.stores import new_template, save_template
from renderer.core.compositor import Surface
from renderer.core.editor_state import MAX_ZOOM, MIN_ZOOM, EditorSession
from renderer.core.models import DataContext
from renderer.widgets.drag_canvas import DragCanvas
from renderer.widgets.property_panel import PropertyPanel
from ui.locales import ensure_language, format_message, get_section


class EditorTab(QWidget):
    templateSaved = Signal(object)

    def __init__(self, services, runner, get_export_dir=None, parent=None, error_notifier=None):
        super().__init__(parent)
        self.services = services
        self.runner = runner
        self.get_export_dir = get_export_dir
        self.error_notifier = error_notifier

        self.language = ensure_language("en")
        self.strings: dict = {}

        self.session = EditorSession(new_template())

        layout = QHBoxLayout()

        # canvas column
        left = QVBoxLayout()
        toolbar = QHBoxLayout()
        self.add_text_button = QPushButton()
        self.add_text_button.clicked.connect(self.add_text)
        toolbar.addWidget(self.add_text_button)
        self.add_image_button = QPushButton()
        self.add_image_button.clicked.connect(self.add_image)
        toolbar.addWidget(self.add_image_button)
        toolbar.addStretch(1)
        self.zoom_label = QLabel()
        toolbar.addWidget(self.zoom_label)
        self.zoom_slider = QSlider(Qt.Horizontal)
        self.zoom_slider.setRange(int(MIN_ZOOM * 100), int(MAX_ZOOM * 100))
        self.zoom_slider.setValue(100)
        self.zoom_slider.valueChanged.connect(self.on_zoom_slider)
        toolbar.addWidget(self.zoom_slider)
        left.addLayout(toolbar)

        self.canvas = DragCanvas(self.session)
        left.addWidget(self.canvas, 1)
        layout.addLayout(left, 3)

        # inspector column
        right = QVBoxLayout()
        self.property_panel = PropertyPanel()
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self.property_panel)
        right.addWidget(scroll, 1)

        self.save_button = QPushButton()
        self.save_button.clicked.connect(self.save)
        right.addWidget(self.save_button)
        self.preview_button = QPushButton()
        self.preview_button.clicked.connect(self.render_preview)
        right.addWidget(self.preview_button)
        layout.addLayout(right, 1)

        self.canvas.itemSelected.connect(self.property_panel.set_element)
        self.canvas.elementChanged.connect(self.property_panel.set_element)
        self.property_panel.settingsChanged.connect(self.apply_element_changes)
        self.property_panel.templateChanged.connect(self.apply_template_changes)
        self.property_panel.removeRequested.connect(self.remove_element)

        self.setLayout(layout)
        self._show_template_fields()
        self.set_language(self.language)

    # ───────────────────────────────────────────────
    # Session
    # ───────────────────────────────────────────────
    def open_template(self, template):
        self.session = EditorSession(template)
        self.canvas.set_session(self.session)
        self.property_panel.set_element(None)
        self._show_template_fields()

    def _show_template_fields(self):
        self.property_panel.set_template_fields(
            self.session.name, self.session.type, self.session.background_url
        )

    def add_text(self):
        el = self.session.add_text()
        self.property_panel.set_element(el)
        self.canvas.update()

    def add_image(self):
        el = self.session.add_image()
        self.property_panel.set_element(el)
        self.canvas.update()

    def remove_element(self, element_id):
        self.session.remove(element_id)
        self.property_panel.set_element(None)
        self.canvas.update()

    def apply_element_changes(self, element_id, changes):
        try:
            el = self.session.update_element(element_id, **changes)
        except (KeyError, TypeError) as e:
            self._emit_error(self.strings.get("error_title", ""), str(e))
            return
        self.property_panel.set_element(el)
        self.canvas.update()

    def apply_template_changes(self, fields):
        self.session.set_template_fields(**fields)
        self.canvas.update()

    def on_zoom_slider(self, value):
        self.canvas.zoom_to(value / 100.0)
        self.zoom_label.setText(f"{int(self.session.view.zoom * 100)}%")

    # ───────────────────────────────────────────────
    # Save / preview
    # ───────────────────────────────────────────────
    def save(self):
        template = self.session.to_template()
        self.save_button.setEnabled(False)
        self.runner.submit(
            save_template(self.services.templates, template),
            on_done=lambda _: self._saved(template),
            on_error=self._failed,
        )

    def _saved(self, template):
        self.session.dirty = False
        self.save_button.setEnabled(True)
        self._emit_error(
            self.strings.get("saved_title", ""),
            format_message(self.strings, "saved_message", name=template.name),
            level="info",
        )
        self.templateSaved.emit(template)

    def render_preview(self):
        """Render without any record data: bindings fall back, QR elements are skipped."""
        template = self.session.to_template()
        export_dir = ((self.get_export_dir() if self.get_export_dir else None) or "export").strip() or "export"
        path = os.path.join(export_dir, f"preview_{template.id}.png")

        async def _render():
            surface = Surface(self.services.generator.cfg.DEFAULT_SURFACE_WIDTH,
                              self.services.generator.cfg.DEFAULT_SURFACE_HEIGHT)
            await self.services.generator.renderer.render(surface, template, context=DataContext())
            os.makedirs(export_dir, exist_ok=True)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, surface.image.save, path)
            return path

        self.preview_button.setEnabled(False)
        self.runner.submit(_render(), on_done=self._previewed, on_error=self._failed)

    def _previewed(self, path):
        self.preview_button.setEnabled(True)
        self._emit_error(
            self.strings.get("done_title", ""),
            format_message(self.strings, "done_message", path=path),
            level="info",
        )

    def _failed(self, message):
        self.save_button.setEnabled(True)
        self.preview_button.setEnabled(True)
        self._emit_error(self.strings.get("error_title", ""), message)

    def set_language(self, language: str):
        language = ensure_language(language)
        self.language = language
        strings = get_section(language, "editor_tab")
        self.strings = strings
        self.add_text_button.setText(strings.get("add_text", ""))
        self.add_image_button.setText(strings.get("add_image", ""))
        self.save_button.setText(strings.get("save", ""))
        self.preview_button.setText(strings.get("preview", ""))
        self.zoom_label.setText(f"{int(self.session.view.zoom * 100)}%")

    def shutdown(self):
        self.canvas.shutdown()

    def _emit_error(self, title: str, message: str, level: str = "error"):
        if self.error_notifier:
            self.error_notifier.emit_error(title, message, level)
