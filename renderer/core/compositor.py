"""Background and image-layer composition onto a render surface."""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Tuple

from PIL import Image

from .bindings import resolve_entry
from .errors import AssetLoadFailure, QRPayloadError
from .image_loader import AsyncImageLoader
from .models import DataContext, ImageElement
from .qr_payload import encode, payload_fields, render_qr

logger = logging.getLogger(__name__)

DEFAULT_SIZE = (1000, 600)


class Surface:
    """Mutable holder of the RGBA raster being drawn on."""

    def __init__(self, width: int = DEFAULT_SIZE[0], height: int = DEFAULT_SIZE[1], color=(255, 255, 255, 255)):
        self.image = Image.new("RGBA", (int(width), int(height)), color)

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def allocate(self, width: int, height: int, color=(255, 255, 255, 255)) -> None:
        self.image = Image.new("RGBA", (int(width), int(height)), color)

    def paste(self, img: Image.Image, box: Tuple[float, float, float, float]) -> None:
        """Stretch ``img`` to ``box`` and alpha-composite it; parts outside the surface are clipped."""
        x, y, w, h = (int(round(v)) for v in box)
        if w <= 0 or h <= 0:
            return
        layer = img.convert("RGBA")
        if layer.size != (w, h):
            layer = layer.resize((w, h), Image.LANCZOS)
        overlay = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        overlay.paste(layer, (x, y))
        self.image.alpha_composite(overlay)


# -------------------------------------------------
# Background
# -------------------------------------------------

async def draw_background(
    surface: Surface,
    background_url: Optional[str],
    loader: AsyncImageLoader,
    preloaded: Optional[Image.Image] = None,
) -> bool:
    """Resize the surface to the background's natural size and draw it.

    Returns False (surface untouched) when there is no loadable background.
    """
    bg = preloaded
    if bg is None:
        if not background_url:
            return False
        try:
            bg = await loader.load(background_url)
        except AssetLoadFailure as exc:
            logger.warning("Background not loaded, keeping %dx%d surface: %s", *surface.size, exc)
            return False

    surface.allocate(*bg.size)
    surface.paste(bg, (0, 0, bg.size[0], bg.size[1]))
    return True


# -------------------------------------------------
# Image elements
# -------------------------------------------------

def element_source(element: ImageElement, context: Optional[DataContext]) -> str:
    """URL drawn for a non-QR element: first binding, else the literal ``image_url``."""
    entry = element.first_binding()
    if entry is not None:
        url = resolve_entry(context, entry)
        if url:
            return url
    return element.image_url or ""


async def load_element_image(
    element: ImageElement,
    context: Optional[DataContext],
    loader: AsyncImageLoader,
    preloaded: Optional[Mapping[str, Image.Image]] = None,
) -> Optional[Image.Image]:
    """Raster for one image element, or None when it is skipped.

    A QR payload setting wins over ``image_url`` and bindings; nothing is fetched then.
    """
    if element.qr is not None:
        try:
            payload = encode(payload_fields(element.qr, context))
        except QRPayloadError as exc:
            logger.warning("QR element %s skipped: %s", element.id, exc)
            return None
        return render_qr(payload, int(element.width), int(element.height), element.qr.error_correction)

    entry = element.first_binding()
    if preloaded and entry is not None and entry.field in preloaded:
        return preloaded[entry.field]

    source = element_source(element, context)
    if not source:
        logger.debug("Image element %s has no source", element.id)
        return None
    try:
        return await loader.load(source)
    except AssetLoadFailure as exc:
        logger.warning("Image element %s skipped: %s", element.id, exc)
        return None
    except Exception as exc:
        # one element never sinks the whole render
        logger.warning("Image element %s skipped: unexpected %s: %s", element.id, exc.__class__.__name__, exc)
        return None


def draw_image_element(surface: Surface, element: ImageElement, img: Optional[Image.Image]) -> None:
    if img is None:
        return
    surface.paste(img, element.box)
