from __future__ import annotations

import logging
from typing import Mapping, Optional

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q

from .errors import QRPayloadError
from .models import DataContext, QRPayloadSpec

logger = logging.getLogger(__name__)

ERROR_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

FIELD_LABELS = (("name", "Name"), ("number", "Number"), ("city", "City"))


def encode(fields: Mapping[str, Optional[str]]) -> str:
    """``{"name": "Ann", "city": "Pune"}`` -> ``"{Name:Ann, City:Pune}"``.

    Only non-empty fields, always in name -> number -> city order.
    """
    parts = []
    for key, label in FIELD_LABELS:
        value = fields.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            parts.append(f"{label}:{value}")
    if not parts:
        raise QRPayloadError("QR payload needs at least one of name, number, city")
    return "{" + ", ".join(parts) + "}"


def payload_fields(spec: QRPayloadSpec, context: Optional[DataContext]) -> dict:
    merged = context.merged() if context else {}
    return {
        "name": merged.get(spec.name_field),
        "number": merged.get(spec.number_field),
        "city": merged.get(spec.city_field),
    }


def render_qr(payload: str, width: int, height: int, error_correction: str = "M") -> Image.Image:
    """Square QR raster of side ``min(width, height)`` with no quiet zone."""
    side = max(1, int(min(width, height)))
    level = ERROR_LEVELS.get((error_correction or "M").upper(), ERROR_CORRECT_M)

    qr = qrcode.QRCode(error_correction=level, box_size=1, border=0)
    qr.add_data(payload)
    qr.make(fit=True)
    matrix = qr.make_image(fill_color="black", back_color="white").get_image()

    logger.debug("QR %dx%d modules scaled to %dpx", matrix.size[0], matrix.size[1], side)
    return matrix.convert("RGBA").resize((side, side), Image.NEAREST)
