from PySide6.QtWidgets import QWidget
from PySide6.QtGui import (
    QPainter, QColor, QPen, QFont, QFontMetricsF, QImage, QPixmap, QBrush
)
from PySide6.QtCore import Qt, QObject, QRectF, QThread, Signal, Slot
import logging

from renderer.core.editor_state import EditorSession, IDLE
from renderer.core.image_loader import ImageLoader
from renderer.core.models import ImageElement, TemplateBinding, TextElement
from renderer.core.text_layout import layout_text

logger = logging.getLogger(__name__)


def pil_to_qimage(img):
    img = img.convert("RGBA")
    data = img.tobytes("raw", "RGBA")
    return QImage(data, img.width, img.height, img.width * 4, QImage.Format_RGBA8888).copy()


def binding_preview(element):
    """What the editor shows for bound content: the placeholders, not data."""
    binding = element.binding
    if isinstance(binding, TemplateBinding):
        return binding.template
    if binding:
        return "\n".join("{{%s.%s}}" % (e.source, e.field) for e in binding)
    return getattr(element, "static_text", "")


# ============================================================
# Background preview loader (requests, off the GUI thread)
# ============================================================
class PreviewLoader(QObject):
    loaded = Signal(str, QImage)
    failed = Signal(str)

    def __init__(self):
        super().__init__()
        self.loader = ImageLoader()

    @Slot(str)
    def load(self, source):
        img = self.loader.load(source)
        if img is None:
            self.failed.emit(source)
            return
        self.loaded.emit(source, pil_to_qimage(img))


# ============================================================
# DragCanvas: paints an EditorSession and feeds it pointer input
# ============================================================
class DragCanvas(QWidget):
    itemSelected = Signal(object)       # element or None
    elementChanged = Signal(object)     # element after a drag / resize
    canvasResized = Signal(int, int)
    requestImage = Signal(str)

    def __init__(self, session: EditorSession, parent=None):
        super().__init__(parent)
        self.setMinimumSize(480, 320)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)

        self.session = session
        self.pixmaps = {}
        self.pending = set()
        self._fitted = False

        self.loader_thread = QThread(self)
        self.preview_loader = PreviewLoader()
        self.preview_loader.moveToThread(self.loader_thread)
        self.requestImage.connect(self.preview_loader.load)
        self.preview_loader.loaded.connect(self._on_image_loaded)
        self.preview_loader.failed.connect(self._on_image_failed)
        self.loader_thread.finished.connect(self.preview_loader.deleteLater)
        self.loader_thread.start()

    def shutdown(self):
        self.loader_thread.quit()
        self.loader_thread.wait()

    def set_session(self, session: EditorSession):
        self.session = session
        self._fitted = False
        self.itemSelected.emit(None)
        self.update()

    # --------------------------------------------------------
    # Image cache
    # --------------------------------------------------------
    def pixmap_for(self, source):
        if not source:
            return None
        if source in self.pixmaps:
            return self.pixmaps[source]
        if source not in self.pending:
            self.pending.add(source)
            self.requestImage.emit(source)
        return None

    def _on_image_loaded(self, source, image):
        self.pending.discard(source)
        self.pixmaps[source] = QPixmap.fromImage(image)
        if source == self.session.background_url:
            self.session.set_canvas_size(image.width(), image.height())
            self.canvasResized.emit(image.width(), image.height())
            self._fitted = False
        self.update()

    def _on_image_failed(self, source):
        self.pending.discard(source)
        self.pixmaps[source] = None
        logger.warning("Preview could not load %s", source)

    # --------------------------------------------------------
    # Paint
    # --------------------------------------------------------
    def paintEvent(self, event):
        if not self._fitted:
            self.session.fit((self.width(), self.height()))
            self._fitted = True

        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        painter.setRenderHint(QPainter.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(45, 45, 45))

        view = self.session.view
        painter.translate(view.pan_x, view.pan_y)
        painter.scale(view.zoom, view.zoom)

        W, H = self.session.canvas_width, self.session.canvas_height
        canvas_rect = QRectF(0, 0, W, H)
        bg = self.pixmap_for(self.session.background_url)
        if bg:
            painter.drawPixmap(canvas_rect, bg, QRectF(bg.rect()))
        else:
            painter.fillRect(canvas_rect, QColor(255, 255, 255))

        for el in self.session.elements:
            if isinstance(el, ImageElement):
                self.paint_image(painter, el)
            else:
                self.paint_text(painter, el)

        selected = self.session.selected
        if selected is not None:
            self.paint_selection(painter, selected)

        painter.end()

    def paint_image(self, painter, el):
        box = QRectF(el.x, el.y, el.width, el.height)
        if el.qr is not None:
            painter.fillRect(box, QColor(255, 255, 255))
            painter.setPen(QPen(QColor(0, 0, 0), 2))
            side = min(el.width, el.height)
            painter.drawRect(QRectF(el.x, el.y, side, side))
            painter.drawText(box, Qt.AlignCenter, "QR")
            return

        pix = self.pixmap_for(el.image_url) if not el.binding else None
        if not pix:
            painter.fillRect(box, QColor(200, 200, 200))
            painter.setPen(QColor(80, 80, 80))
            painter.drawText(box, Qt.AlignCenter | Qt.TextWordWrap, binding_preview(el) or "image")
            return

        painter.save()
        painter.setClipRect(box)
        painter.drawPixmap(self.fit_rect(el, pix), pix, QRectF(pix.rect()))
        painter.restore()

    @staticmethod
    def fit_rect(el, pix):
        """object-fit, preview only; the renderer always stretches."""
        pw, ph = pix.width(), pix.height()
        fit = el.object_fit
        if fit == "fill" or pw == 0 or ph == 0:
            return QRectF(el.x, el.y, el.width, el.height)
        if fit == "cover":
            scale = max(el.width / pw, el.height / ph)
        elif fit == "none":
            scale = 1.0
        elif fit == "scale-down":
            scale = min(1.0, el.width / pw, el.height / ph)
        else:
            scale = min(el.width / pw, el.height / ph)
        w, h = pw * scale, ph * scale
        return QRectF(el.x + (el.width - w) / 2, el.y + (el.height - h) / 2, w, h)

    def paint_text(self, painter, el: TextElement):
        box = QRectF(el.x, el.y, el.width, el.height)
        if el.background_color and el.background_opacity > 0:
            color = QColor(el.background_color)
            color.setAlphaF(min(1.0, el.background_opacity))
            painter.fillRect(box, color)

        font = QFont(el.font)
        font.setPixelSize(max(1, int(round(el.font_size))))
        painter.setFont(font)
        painter.setPen(QColor(el.text_color))
        metrics = QFontMetricsF(font)

        lines = layout_text(
            binding_preview(el), metrics.horizontalAdvance, el.box,
            el.font_size, el.line_height, el.wrap, el.alignment,
        )
        for line in lines:
            painter.drawText(QRectF(line.x, line.y, max(line.width, 1) + 2, el.font_size * el.line_height),
                             Qt.AlignLeft | Qt.AlignTop, line.text)

    def paint_selection(self, painter, el):
        zoom = self.session.view.zoom
        pen = QPen(QColor(79, 70, 229), 2 / zoom)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(QRectF(el.x, el.y, el.width, el.height))

        hx, hy, hw, hh = self.session.handle_rect(el)
        painter.setBrush(QBrush(QColor(255, 255, 255)))
        painter.setPen(QPen(QColor(0, 0, 0), 1 / zoom))
        painter.drawRect(QRectF(hx, hy, hw, hh))

    # --------------------------------------------------------
    # ZOOM
    # --------------------------------------------------------
    def wheelEvent(self, event):
        steps = 1 if event.angleDelta().y() > 0 else -1
        pos = event.position()
        self.session.wheel(steps, (pos.x(), pos.y()))
        self.update()

    def zoom_to(self, zoom):
        self.session.set_zoom(zoom, (self.width(), self.height()))
        self.update()

    # --------------------------------------------------------
    # Pointer: select / drag / resize / pan (Shift + LMB or MMB pans)
    # --------------------------------------------------------
    def mousePressEvent(self, event):
        if event.button() not in (Qt.LeftButton, Qt.MiddleButton):
            return
        pan = event.button() == Qt.MiddleButton or bool(event.modifiers() & Qt.ShiftModifier)
        pos = event.position()
        before = self.session.selected_id
        self.session.pointer_down((pos.x(), pos.y()), pan_modifier=pan)
        if self.session.selected_id != before:
            self.itemSelected.emit(self.session.selected)
        self.update()

    def mouseMoveEvent(self, event):
        if self.session.gesture == IDLE:
            return
        pos = event.position()
        self.session.pointer_move((pos.x(), pos.y()))
        self.update()

    def mouseReleaseEvent(self, event):
        gesture = self.session.gesture
        self.session.pointer_up()
        if gesture != IDLE and self.session.selected is not None:
            self.elementChanged.emit(self.session.selected)

    def keyPressEvent(self, event):
        if event.key() in (Qt.Key_Delete, Qt.Key_Backspace) and self.session.selected_id:
            self.session.remove(self.session.selected_id)
            self.itemSelected.emit(None)
            self.update()
            return
        super().keyPressEvent(event)
