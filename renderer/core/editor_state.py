"""Editor session: element arena, selection and the pointer gesture state machine.

Pure Python so the widgets stay thin; every coordinate the widgets hand in
is in screen space and converted here with the current view transform.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .models import Element, ImageElement, Template, TextElement

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

MIN_ZOOM = 0.2
MAX_ZOOM = 4.0
WHEEL_FACTOR = 1.1
MIN_ELEMENT_SIZE = 50.0
HANDLE_SIZE = 10.0  # screen px

IDLE = "idle"
DRAGGING = "dragging"
RESIZING = "resizing"
PANNING = "panning"

PLACEHOLDER_IMAGE_URL = "https://placehold.co/200x200"


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class ViewTransform:
    """``canvas = (screen - pan) / zoom``. Presentation only, never persisted."""

    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def to_canvas(self, screen: Point) -> Point:
        return ((screen[0] - self.pan_x) / self.zoom, (screen[1] - self.pan_y) / self.zoom)

    def to_screen(self, canvas: Point) -> Point:
        return (canvas[0] * self.zoom + self.pan_x, canvas[1] * self.zoom + self.pan_y)

    def zoom_at(self, new_zoom: float, anchor: Point) -> None:
        """Change zoom keeping the canvas point under ``anchor`` (screen) fixed."""
        new_zoom = clamp(new_zoom, MIN_ZOOM, MAX_ZOOM)
        ratio = new_zoom / self.zoom
        self.pan_x = anchor[0] - (anchor[0] - self.pan_x) * ratio
        self.pan_y = anchor[1] - (anchor[1] - self.pan_y) * ratio
        self.zoom = new_zoom


class EditorSession:
    def __init__(self, template: Template, canvas_size: Tuple[int, int] = (1000, 600)):
        self.template_id = template.id
        self.name = template.name
        self.type = template.type
        self.background_url = template.background_url
        self.canvas_width, self.canvas_height = canvas_size

        self._elements: Dict[str, Element] = {el.id: el for el in template.elements}
        self.selected_id: Optional[str] = None
        self.view = ViewTransform()
        self.dirty = False

        self.gesture = IDLE
        self._pointer_start: Point = (0.0, 0.0)
        self._origin: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
        self._pan_start: Point = (0.0, 0.0)

    # --------------------------------------------------------
    # Arena
    # --------------------------------------------------------
    @property
    def elements(self) -> List[Element]:
        """All elements, bottom to top."""
        return sorted(self._elements.values(), key=lambda el: el.z_index)

    def element(self, element_id: Optional[str]) -> Optional[Element]:
        if element_id is None:
            return None
        return self._elements.get(element_id)

    @property
    def selected(self) -> Optional[Element]:
        return self.element(self.selected_id)

    def _put(self, element: Element) -> Element:
        # copy-on-write: the mapping is replaced, never edited in place
        self._elements = {**self._elements, element.id: element}
        self.dirty = True
        return element

    def update_element(self, element_id: str, **changes) -> Element:
        current = self._elements.get(element_id)
        if current is None:
            raise KeyError(element_id)
        return self._put(dataclasses.replace(current, **changes))

    def _next_z(self) -> int:
        return len(self._elements) + 1

    def add_text(self) -> TextElement:
        el = TextElement(
            id=str(uuid.uuid4()),
            x=50,
            y=50,
            width=150,
            height=40,
            z_index=self._next_z(),
            static_text="New Text",
            font="Arial",
            font_size=16,
            text_color="#000000",
        )
        self._put(el)
        self.selected_id = el.id
        return el

    def add_image(self) -> ImageElement:
        el = ImageElement(
            id=str(uuid.uuid4()),
            x=100,
            y=100,
            width=200,
            height=200,
            z_index=self._next_z(),
            image_url=PLACEHOLDER_IMAGE_URL,
        )
        self._put(el)
        self.selected_id = el.id
        return el

    def remove(self, element_id: str) -> None:
        if element_id not in self._elements:
            return
        self._elements = {k: v for k, v in self._elements.items() if k != element_id}
        if self.selected_id == element_id:
            self.selected_id = None
        self.dirty = True

    def select(self, element_id: Optional[str]) -> None:
        self.selected_id = element_id if element_id in self._elements else None

    def set_canvas_size(self, width: int, height: int) -> None:
        self.canvas_width, self.canvas_height = int(width), int(height)

    def set_template_fields(self, name=None, template_type=None, background_url=None) -> None:
        if name is not None:
            self.name = name
        if template_type is not None:
            self.type = template_type
        if background_url is not None:
            self.background_url = background_url
        self.dirty = True

    def to_template(self) -> Template:
        """Snapshot for saving; later edits do not touch it."""
        items = self.elements
        return Template(
            id=self.template_id,
            name=self.name,
            type=self.type,
            background_url=self.background_url,
            text_elements=[el for el in items if isinstance(el, TextElement)],
            image_elements=[el for el in items if isinstance(el, ImageElement)],
        )

    # --------------------------------------------------------
    # Hit testing (canvas space)
    # --------------------------------------------------------
    def element_at(self, point: Point) -> Optional[Element]:
        px, py = point
        for el in reversed(self.elements):
            if el.x <= px <= el.x + el.width and el.y <= py <= el.y + el.height:
                return el
        return None

    def handle_rect(self, el: Element) -> Tuple[float, float, float, float]:
        """Bottom-right resize handle, a fixed screen size at any zoom."""
        s = HANDLE_SIZE / self.view.zoom
        return (el.x + el.width - s, el.y + el.height - s, s, s)

    def on_handle(self, point: Point) -> bool:
        el = self.selected
        if el is None:
            return False
        hx, hy, hw, hh = self.handle_rect(el)
        return hx <= point[0] <= hx + hw and hy <= point[1] <= hy + hh

    # --------------------------------------------------------
    # Gestures (screen space in, canvas space inside)
    # --------------------------------------------------------
    def pointer_down(self, screen: Point, pan_modifier: bool = False) -> str:
        point = self.view.to_canvas(screen)
        self._pointer_start = point

        if not pan_modifier:
            if self.on_handle(point):
                el = self.selected
                self._origin = (el.x, el.y, el.width, el.height)
                self.gesture = RESIZING
                return self.gesture

            el = self.element_at(point)
            if el is not None:
                self.selected_id = el.id
                self._origin = (el.x, el.y, el.width, el.height)
                self.gesture = DRAGGING
                return self.gesture

            self.selected_id = None

        self._pan_start = (screen[0] - self.view.pan_x, screen[1] - self.view.pan_y)
        self.gesture = PANNING
        return self.gesture

    def pointer_move(self, screen: Point) -> None:
        if self.gesture == PANNING:
            self.view.pan_x = screen[0] - self._pan_start[0]
            self.view.pan_y = screen[1] - self._pan_start[1]
            return
        if self.gesture not in (DRAGGING, RESIZING) or self.selected_id is None:
            return

        point = self.view.to_canvas(screen)
        dx = point[0] - self._pointer_start[0]
        dy = point[1] - self._pointer_start[1]
        x0, y0, w0, h0 = self._origin

        if self.gesture == DRAGGING:
            self.move_to(self.selected_id, x0 + dx, y0 + dy)
        else:
            self.resize_to(self.selected_id, w0 + dx, h0 + dy)

    def pointer_up(self) -> None:
        self.gesture = IDLE

    def move_to(self, element_id: str, x: float, y: float) -> Element:
        """Clamp so the whole element stays on the canvas."""
        el = self._elements[element_id]
        x = clamp(x, 0.0, max(0.0, self.canvas_width - el.width))
        y = clamp(y, 0.0, max(0.0, self.canvas_height - el.height))
        return self.update_element(element_id, x=x, y=y)

    def resize_to(self, element_id: str, width: float, height: float) -> Element:
        """Top-left stays fixed; never below the minimum size or past the canvas edge."""
        el = self._elements[element_id]
        max_w = max(MIN_ELEMENT_SIZE, self.canvas_width - el.x)
        max_h = max(MIN_ELEMENT_SIZE, self.canvas_height - el.y)
        width = clamp(width, MIN_ELEMENT_SIZE, max_w)
        height = clamp(height, MIN_ELEMENT_SIZE, max_h)
        return self.update_element(element_id, width=width, height=height)

    # --------------------------------------------------------
    # Zoom
    # --------------------------------------------------------
    def wheel(self, steps: float, screen: Point) -> float:
        """Mouse wheel zoom around the pointer; positive steps zoom in."""
        self.view.zoom_at(self.view.zoom * (WHEEL_FACTOR ** steps), screen)
        return self.view.zoom

    def set_zoom(self, zoom: float, viewport_size: Tuple[float, float]) -> float:
        """Slider zoom around the viewport center."""
        center = (viewport_size[0] / 2, viewport_size[1] / 2)
        self.view.zoom_at(zoom, center)
        return self.view.zoom

    def fit(self, viewport_size: Tuple[float, float], margin: float = 20) -> None:
        """Zoom and center the canvas inside the viewport."""
        avail_w = max(1.0, viewport_size[0] - 2 * margin)
        avail_h = max(1.0, viewport_size[1] - 2 * margin)
        zoom = clamp(min(avail_w / self.canvas_width, avail_h / self.canvas_height), MIN_ZOOM, MAX_ZOOM)
        self.view.zoom = zoom
        self.view.pan_x = (viewport_size[0] - self.canvas_width * zoom) / 2
        self.view.pan_y = (viewport_size[1] - self.canvas_height * zoom) / 2
