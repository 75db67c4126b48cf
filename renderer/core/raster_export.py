from __future__ import annotations

import io
import logging
import math
from typing import Optional, Tuple

from PIL import Image

logger = logging.getLogger(__name__)


def fit_within(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Shrink ``(width, height)`` to fit the limits, keeping the aspect ratio. Never enlarges."""
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


def flatten(image: Image.Image, background=(255, 255, 255)) -> Image.Image:
    """JPEG has no alpha; composite onto a solid background."""
    if image.mode == "RGB":
        return image
    rgba = image.convert("RGBA")
    base = Image.new("RGB", rgba.size, background)
    base.paste(rgba, mask=rgba.split()[3])
    return base


def to_jpeg(
    image: Image.Image,
    quality: int = 90,
    max_size: Optional[Tuple[int, int]] = (1080, 1080),
) -> bytes:
    """Encode as JPEG, downscaling first when ``max_size`` is given and exceeded."""
    out = flatten(image)
    if max_size:
        target = fit_within(out.width, out.height, *max_size)
        if target != out.size:
            logger.debug("Downscaling %dx%d -> %dx%d", out.width, out.height, *target)
            out = out.resize(target, Image.LANCZOS)

    buf = io.BytesIO()
    out.save(buf, format="JPEG", quality=int(quality))
    return buf.getvalue()


def convert_upload(data: bytes, max_size: Tuple[int, int] = (1080, 720), quality: int = 80) -> bytes:
    """Re-encode a user-supplied photo or logo as a bounded JPEG."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return to_jpeg(img, quality=quality, max_size=max_size)
