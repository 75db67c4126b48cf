from dataclasses import replace

from PySide6.QtWidgets import (
    QWidget, QLabel, QLineEdit, QPushButton, QVBoxLayout, QHBoxLayout,
    QSpinBox, QDoubleSpinBox, QComboBox, QColorDialog, QCheckBox, QGroupBox,
    QTableWidget, QTableWidgetItem, QHeaderView
)
from PySide6.QtGui import QColor
from PySide6.QtCore import Signal

from renderer.core.models import (
    ALIGNMENTS, OBJECT_FITS, TEMPLATE_TYPES, TRANSFORMS, NAMESPACE_ALIASES,
    BindingEntry, ImageElement, QRPayloadSpec, TemplateBinding, TextElement,
)
from renderer.core.qr_payload import ERROR_LEVELS


class PropertyPanel(QWidget):
    settingsChanged = Signal(str, dict)   # element id, changed fields
    templateChanged = Signal(dict)        # name / type / background_url
    removeRequested = Signal(str)

    BINDING_COLUMNS = ("source", "field", "fallback", "transform")

    def __init__(self, parent=None):
        super().__init__(parent)

        self.element = None
        self.text_color = QColor("#000000")
        self.bg_color = None
        self.build_ui()
        self.set_element(None)

    # ───────────────────────────────────────────────
    # UI
    # ───────────────────────────────────────────────
    def build_ui(self):
        layout = QVBoxLayout(self)

        # template fields
        tpl_box = QGroupBox("Template")
        tpl = QVBoxLayout(tpl_box)
        self.edit_name = QLineEdit()
        tpl.addWidget(self._row("Name:", self.edit_name))
        self.cmb_template_type = QComboBox()
        self.cmb_template_type.addItems(TEMPLATE_TYPES)
        tpl.addWidget(self._row("Type:", self.cmb_template_type))
        self.edit_background = QLineEdit()
        self.edit_background.setPlaceholderText("https://... or file path")
        tpl.addWidget(self._row("Background:", self.edit_background))
        self.btn_apply_template = QPushButton("Apply")
        self.btn_apply_template.clicked.connect(self.apply_template_changes)
        tpl.addWidget(self.btn_apply_template)
        layout.addWidget(tpl_box)

        # element title
        self.lbl_title = QLabel("Element: ---")
        layout.addWidget(self.lbl_title)

        # geometry
        self.spin_x = self._spin(-5000, 5000)
        layout.addWidget(self._row("X:", self.spin_x))
        self.spin_y = self._spin(-5000, 5000)
        layout.addWidget(self._row("Y:", self.spin_y))
        self.spin_w = self._spin(1, 10000)
        layout.addWidget(self._row("Width:", self.spin_w))
        self.spin_h = self._spin(1, 10000)
        layout.addWidget(self._row("Height:", self.spin_h))
        self.spin_z = QSpinBox()
        self.spin_z.setRange(-1000, 1000)
        layout.addWidget(self._row("Z index:", self.spin_z))

        # ───── TEXT ─────
        self.text_box = QGroupBox("Text")
        text = QVBoxLayout(self.text_box)
        self.edit_text = QLineEdit()
        text.addWidget(self._row("Static text:", self.edit_text))
        self.edit_font = QLineEdit()
        text.addWidget(self._row("Font:", self.edit_font))
        self.spin_fs = self._spin(1, 400)
        text.addWidget(self._row("Font size:", self.spin_fs))
        self.spin_lh = QDoubleSpinBox()
        self.spin_lh.setRange(0.5, 5.0)
        self.spin_lh.setSingleStep(0.1)
        text.addWidget(self._row("Line height:", self.spin_lh))
        self.cmb_align = QComboBox()
        self.cmb_align.addItems(ALIGNMENTS)
        text.addWidget(self._row("Align:", self.cmb_align))
        self.chk_wrap = QCheckBox("Wrap")
        text.addWidget(self.chk_wrap)
        self.btn_text_color = QPushButton("Text Color")
        self.btn_text_color.clicked.connect(lambda: self.pick_color("text_color"))
        text.addWidget(self.btn_text_color)
        self.btn_bg_color = QPushButton("Background Color")
        self.btn_bg_color.clicked.connect(lambda: self.pick_color("bg_color"))
        text.addWidget(self.btn_bg_color)
        self.spin_bg_opacity = QSpinBox()
        self.spin_bg_opacity.setRange(0, 100)
        text.addWidget(self._row("Background %:", self.spin_bg_opacity))
        layout.addWidget(self.text_box)

        # ───── IMAGE ─────
        self.image_box = QGroupBox("Image")
        image = QVBoxLayout(self.image_box)
        self.edit_image_url = QLineEdit()
        image.addWidget(self._row("Image URL:", self.edit_image_url))
        self.cmb_fit = QComboBox()
        self.cmb_fit.addItems(OBJECT_FITS)
        image.addWidget(self._row("Fit:", self.cmb_fit))
        self.chk_qr = QCheckBox("QR code (name, number, city)")
        image.addWidget(self.chk_qr)
        self.cmb_qr_level = QComboBox()
        self.cmb_qr_level.addItems(list(ERROR_LEVELS))
        image.addWidget(self._row("QR level:", self.cmb_qr_level))
        layout.addWidget(self.image_box)

        # ───── BINDINGS ─────
        bind_box = QGroupBox("Binding")
        bind = QVBoxLayout(bind_box)
        self.edit_binding_template = QLineEdit()
        self.edit_binding_template.setPlaceholderText("{{profile.full_name}} - {{artist.designation}}")
        bind.addWidget(self._row("Template:", self.edit_binding_template))
        self.tbl_bindings = QTableWidget(0, len(self.BINDING_COLUMNS))
        self.tbl_bindings.setHorizontalHeaderLabels(list(self.BINDING_COLUMNS))
        self.tbl_bindings.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        bind.addWidget(self.tbl_bindings)
        buttons = QHBoxLayout()
        self.btn_add_binding = QPushButton("Add field")
        self.btn_add_binding.clicked.connect(lambda: self._add_binding_row())
        buttons.addWidget(self.btn_add_binding)
        self.btn_remove_binding = QPushButton("Remove field")
        self.btn_remove_binding.clicked.connect(self._remove_binding_row)
        buttons.addWidget(self.btn_remove_binding)
        bind.addLayout(buttons)
        layout.addWidget(bind_box)

        # actions
        self.btn_apply = QPushButton("Apply changes")
        self.btn_apply.clicked.connect(self.apply_changes)
        layout.addWidget(self.btn_apply)
        self.btn_remove = QPushButton("Remove element")
        self.btn_remove.clicked.connect(self._request_remove)
        layout.addWidget(self.btn_remove)

        layout.addStretch()

    # ───────────────────────────────────────────────
    def _row(self, label, widget):
        row = QWidget()
        h = QHBoxLayout(row)
        h.setContentsMargins(0, 0, 0, 0)
        h.addWidget(QLabel(label))
        h.addWidget(widget)
        return row

    def _spin(self, low, high):
        spin = QDoubleSpinBox()
        spin.setRange(low, high)
        spin.setDecimals(1)
        return spin

    # ───────────────────────────────────────────────
    # Binding rows
    # ───────────────────────────────────────────────
    def _add_binding_row(self, entry=None):
        row = self.tbl_bindings.rowCount()
        self.tbl_bindings.insertRow(row)

        source = QComboBox()
        source.addItems(list(NAMESPACE_ALIASES))
        if entry is not None and entry.source:
            if source.findText(entry.source) < 0:
                source.addItem(entry.source)
            source.setCurrentText(entry.source)
        self.tbl_bindings.setCellWidget(row, 0, source)

        self.tbl_bindings.setItem(row, 1, QTableWidgetItem(entry.field if entry else ""))
        self.tbl_bindings.setItem(row, 2, QTableWidgetItem((entry.fallback or "") if entry else ""))

        transform = QComboBox()
        transform.addItems(["", *TRANSFORMS])
        if entry is not None and entry.transform:
            transform.setCurrentText(entry.transform)
        self.tbl_bindings.setCellWidget(row, 3, transform)

    def _remove_binding_row(self):
        row = self.tbl_bindings.currentRow()
        if row < 0:
            row = self.tbl_bindings.rowCount() - 1
        if row >= 0:
            self.tbl_bindings.removeRow(row)

    def _cell_text(self, row, col):
        item = self.tbl_bindings.item(row, col)
        return item.text().strip() if item else ""

    def collect_binding(self):
        template = self.edit_binding_template.text().strip()
        if template:
            return TemplateBinding(template)

        entries = []
        for row in range(self.tbl_bindings.rowCount()):
            field = self._cell_text(row, 1)
            if not field:
                continue
            entries.append(BindingEntry(
                source=self.tbl_bindings.cellWidget(row, 0).currentText(),
                field=field,
                fallback=self._cell_text(row, 2) or None,
                transform=self.tbl_bindings.cellWidget(row, 3).currentText() or None,
            ))
        return tuple(entries) or None

    def _show_binding(self, binding):
        self.tbl_bindings.setRowCount(0)
        self.edit_binding_template.clear()
        if isinstance(binding, TemplateBinding):
            self.edit_binding_template.setText(binding.template)
        elif binding:
            for entry in binding:
                self._add_binding_row(entry)

    # ───────────────────────────────────────────────
    # Loading
    # ───────────────────────────────────────────────
    def set_template_fields(self, name, template_type, background_url):
        self.edit_name.setText(name or "")
        self.cmb_template_type.setCurrentText(template_type)
        self.edit_background.setText(background_url or "")

    def set_element(self, element):
        self.element = element
        enabled = element is not None
        for w in (self.spin_x, self.spin_y, self.spin_w, self.spin_h, self.spin_z,
                  self.btn_apply, self.btn_remove, self.tbl_bindings,
                  self.edit_binding_template, self.btn_add_binding, self.btn_remove_binding):
            w.setEnabled(enabled)
        self.text_box.setVisible(isinstance(element, TextElement))
        self.image_box.setVisible(isinstance(element, ImageElement))

        if element is None:
            self.lbl_title.setText("Element: ---")
            self._show_binding(None)
            return

        self.lbl_title.setText(f"Element: {element.type} {element.id[:8]}")
        self.spin_x.setValue(element.x)
        self.spin_y.setValue(element.y)
        self.spin_w.setValue(element.width)
        self.spin_h.setValue(element.height)
        self.spin_z.setValue(element.z_index)
        self._show_binding(element.binding)

        if isinstance(element, TextElement):
            self.edit_text.setText(element.static_text)
            self.edit_font.setText(element.font)
            self.spin_fs.setValue(element.font_size)
            self.spin_lh.setValue(element.line_height)
            self.cmb_align.setCurrentText(element.alignment)
            self.chk_wrap.setChecked(element.wrap)
            self.text_color = QColor(element.text_color)
            self.bg_color = QColor(element.background_color) if element.background_color else None
            self.spin_bg_opacity.setValue(int(round(element.background_opacity * 100)))
        else:
            self.edit_image_url.setText(element.image_url)
            self.cmb_fit.setCurrentText(element.object_fit)
            self.chk_qr.setChecked(element.qr is not None)
            self.cmb_qr_level.setCurrentText(element.qr.error_correction if element.qr else "M")

    # ───────────────────────────────────────────────
    # Colors
    # ───────────────────────────────────────────────
    def pick_color(self, field):
        col = QColorDialog.getColor()
        if not col.isValid():
            return

        if field == "text_color":
            self.text_color = col
        elif field == "bg_color":
            self.bg_color = col

    # ───────────────────────────────────────────────
    # Apply
    # ───────────────────────────────────────────────
    def apply_template_changes(self):
        self.templateChanged.emit({
            "name": self.edit_name.text().strip() or "Untitled",
            "template_type": self.cmb_template_type.currentText(),
            "background_url": self.edit_background.text().strip(),
        })

    def apply_changes(self):
        if self.element is None:
            return

        changes = {
            "x": self.spin_x.value(),
            "y": self.spin_y.value(),
            "width": self.spin_w.value(),
            "height": self.spin_h.value(),
            "z_index": self.spin_z.value(),
            "binding": self.collect_binding(),
        }

        if isinstance(self.element, TextElement):
            changes.update({
                "static_text": self.edit_text.text(),
                "font": self.edit_font.text().strip() or "Poppins",
                "font_size": self.spin_fs.value(),
                "line_height": self.spin_lh.value(),
                "alignment": self.cmb_align.currentText(),
                "wrap": self.chk_wrap.isChecked(),
                "text_color": self.text_color.name(),
                "background_color": self.bg_color.name() if self.bg_color else None,
                "background_opacity": self.spin_bg_opacity.value() / 100.0,
            })
        else:
            qr = None
            if self.chk_qr.isChecked():
                # keep a stored field mapping, only the level is edited here
                qr = replace(self.element.qr or QRPayloadSpec(), error_correction=self.cmb_qr_level.currentText())
            changes.update({
                "image_url": self.edit_image_url.text().strip(),
                "object_fit": self.cmb_fit.currentText(),
                "qr": qr,
            })

        self.settingsChanged.emit(self.element.id, changes)

    def _request_remove(self):
        if self.element is not None:
            self.removeRequested.emit(self.element.id)
