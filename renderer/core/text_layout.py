from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .models import TextElement
from .paths import find_font_file

logger = logging.getLogger(__name__)

Measure = Callable[[str], float]


@dataclass(frozen=True)
class LaidOutLine:
    text: str
    x: float
    y: float
    width: float


# -------------------------------------------------
# Pure layout
# -------------------------------------------------

def wrap_words(text: str, measure: Measure, max_width: float) -> List[str]:
    """Greedy wrap. A word wider than ``max_width`` stays on its own line, unbroken."""
    lines: List[str] = []
    line = ""
    for word in text.split(" "):
        candidate = line + word + " "
        if measure(candidate) > max_width and line:
            lines.append(line.strip())
            line = word + " "
        else:
            line = candidate
    lines.append(line.strip())
    return lines


def align_x(alignment: str, base_x: float, box_width: float, text_width: float) -> float:
    if alignment == "center":
        return base_x + (box_width - text_width) / 2
    if alignment == "right":
        return base_x + box_width - text_width
    # "justify" is drawn left aligned
    return base_x


def layout_text(
    text: str,
    measure: Measure,
    box: Tuple[float, float, float, float],
    font_size: float,
    line_height: float = 1.3,
    wrap: bool = False,
    alignment: str = "left",
) -> List[LaidOutLine]:
    """Position every drawn line of ``text`` inside ``box``.

    Newlines always break; with ``wrap`` each paragraph is also word-wrapped
    to the box width. Every drawn line advances ``font_size * line_height``.
    """
    x, y, width, _height = box
    advance = font_size * line_height

    rows: List[str] = []
    for paragraph in text.split("\n"):
        if wrap:
            rows.extend(wrap_words(paragraph, measure, width))
        else:
            rows.append(paragraph)

    out = []
    for i, row in enumerate(rows):
        w = measure(row)
        out.append(LaidOutLine(text=row, x=align_x(alignment, x, width, w), y=y + i * advance, width=w))
    return out


# -------------------------------------------------
# Pillow drawing
# -------------------------------------------------

@lru_cache(maxsize=64)
def load_font(family: Optional[str], size: int) -> ImageFont.FreeTypeFont:
    path = find_font_file(family)
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            logger.warning("Font file %s could not be opened, using default font", path)
    else:
        logger.debug("Font '%s' not found in fonts directory, using default font", family)
    return ImageFont.load_default(size)


def parse_color(value: Optional[str], default=(0, 0, 0)) -> Tuple[int, int, int]:
    if not value:
        return default
    try:
        return ImageColor.getrgb(value)[:3]
    except ValueError:
        logger.warning("Invalid color %r, using %s", value, default)
        return default


def fill_background(surface: Image.Image, element: TextElement) -> None:
    if not element.background_color or element.background_opacity <= 0:
        return
    alpha = int(round(255 * min(1.0, element.background_opacity)))
    r, g, b = parse_color(element.background_color, default=(255, 255, 255))

    overlay = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    x, y, w, h = element.box
    ImageDraw.Draw(overlay).rectangle(
        [int(x), int(y), int(x + w) - 1, int(y + h) - 1], fill=(r, g, b, alpha)
    )
    surface.alpha_composite(overlay)


def draw_text_element(surface: Image.Image, element: TextElement, content: str) -> List[LaidOutLine]:
    """Fill the optional background, then draw ``content`` with full opacity."""
    fill_background(surface, element)
    if not content:
        return []

    size = max(1, int(round(element.font_size)))
    font = load_font(element.font, size)
    lines = layout_text(
        content,
        font.getlength,
        element.box,
        element.font_size,
        element.line_height,
        element.wrap,
        element.alignment,
    )

    draw = ImageDraw.Draw(surface)
    color = parse_color(element.text_color) + (255,)
    for line in lines:
        draw.text((line.x, line.y), line.text, font=font, fill=color)
    return lines
