import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from .models import (
    ALIGNMENTS,
    OBJECT_FITS,
    TEMPLATE_TYPES,
    ImageElement,
    QRPayloadSpec,
    Template,
    TextElement,
    binding_from_json,
    binding_to_json,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Column coercion (numeric columns may arrive as strings)
# ─────────────────────────────────────────────
def _num(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("Non-numeric column value %r, using %s", value, default)
        return default


def _int(value: Any, default: int = 0) -> int:
    return int(_num(value, default))


def _choice(value: Any, allowed, default: str) -> str:
    return value if value in allowed else default


# ─────────────────────────────────────────────
# Text elements
# ─────────────────────────────────────────────
def text_element_from_row(row: Mapping) -> TextElement:
    if "bg_opacity" in row and row.get("bg_opacity") is not None:
        opacity = _num(row.get("bg_opacity"))
    else:
        # legacy column: transparency t means opacity 1 - t, and only when t > 0
        t = _num(row.get("bg_transparency"))
        opacity = 1.0 - t if t > 0 else 0.0

    return TextElement(
        id=str(row["id"]),
        x=_num(row.get("x")),
        y=_num(row.get("y")),
        width=_num(row.get("width"), 150.0),
        height=_num(row.get("height"), 40.0),
        z_index=_int(row.get("z_index")),
        binding=binding_from_json(row.get("binding_config")),
        static_text=row.get("static_text") or row.get("text") or "",
        font=row.get("font") or "Poppins",
        font_size=_num(row.get("font_size"), 16.0),
        line_height=_num(row.get("line_height"), 1.3),
        text_color=row.get("text_color") or "#000000",
        background_color=row.get("bg_color") or None,
        background_opacity=max(0.0, min(1.0, opacity)),
        alignment=_choice(row.get("alignment"), ALIGNMENTS, "left"),
        wrap=bool(row.get("text_wrap")),
    )


def text_element_to_row(el: TextElement, template_id: str) -> Dict:
    return {
        "id": el.id,
        "template_id": template_id,
        "x": el.x,
        "y": el.y,
        "width": el.width,
        "height": el.height,
        "z_index": el.z_index,
        "static_text": el.static_text,
        "font": el.font,
        "font_size": el.font_size,
        "line_height": el.line_height,
        "text_color": el.text_color,
        "bg_color": el.background_color,
        "bg_opacity": el.background_opacity,
        "alignment": el.alignment,
        "text_wrap": el.wrap,
        "binding_config": binding_to_json(el.binding),
    }


# ─────────────────────────────────────────────
# Image elements
# ─────────────────────────────────────────────
def _qr_from_row(row: Mapping) -> Optional[QRPayloadSpec]:
    spec = row.get("qr_spec")
    if isinstance(spec, Mapping) and spec:
        return QRPayloadSpec(
            name_field=spec.get("name") or "full_name",
            number_field=spec.get("number") or "whatsapp_number",
            city_field=spec.get("city") or "city",
            error_correction=str(spec.get("error_correction") or "M").upper(),
        )
    if (row.get("qr_text") or "").strip():
        return QRPayloadSpec()
    return None


def image_element_from_row(row: Mapping) -> ImageElement:
    return ImageElement(
        id=str(row["id"]),
        x=_num(row.get("x")),
        y=_num(row.get("y")),
        width=_num(row.get("width"), 200.0),
        height=_num(row.get("height"), 200.0),
        z_index=_int(row.get("z_index")),
        binding=binding_from_json(row.get("binding_config")),
        image_url=row.get("image_url") or "",
        object_fit=_choice(row.get("object_fit"), OBJECT_FITS, "contain"),
        qr=_qr_from_row(row),
    )


def image_element_to_row(el: ImageElement, template_id: str) -> Dict:
    return {
        "id": el.id,
        "template_id": template_id,
        "x": el.x,
        "y": el.y,
        "width": el.width,
        "height": el.height,
        "z_index": el.z_index,
        "image_url": el.image_url,
        "object_fit": el.object_fit,
        "qr_spec": el.qr.to_dict() if el.qr else None,
        "binding_config": binding_to_json(el.binding),
    }


# ─────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────
def template_from_rows(row: Mapping, text_rows=(), image_rows=()) -> Template:
    return Template(
        id=str(row["id"]),
        name=row.get("name") or "Untitled",
        type=_choice(row.get("type"), TEMPLATE_TYPES, "id_card"),
        background_url=row.get("background_img_url") or "",
        text_elements=[text_element_from_row(r) for r in text_rows],
        image_elements=[image_element_from_row(r) for r in image_rows],
    )


def template_row(template: Template) -> Dict:
    return {
        "id": template.id,
        "name": template.name,
        "type": template.type,
        "background_img_url": template.background_url or None,
    }


def template_to_document(template: Template) -> Dict:
    return {
        "template": template_row(template),
        "text_elements": [text_element_to_row(el, template.id) for el in template.text_elements],
        "image_elements": [image_element_to_row(el, template.id) for el in template.image_elements],
    }


def template_from_document(data: Mapping) -> Template:
    if "template" not in data:
        raise ValueError("Template document has no 'template' section")
    return template_from_rows(data["template"], data.get("text_elements") or [], data.get("image_elements") or [])


class TemplateJSONLoader:
    """One template per JSON file: ``{template, text_elements, image_elements}``."""

    def __init__(self, path):
        self.path = path

    def load(self) -> Template:
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"Template file not found: {self.path}")

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return template_from_document(data)

    def save(self, template: Template) -> None:
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(template_to_document(template), f, indent=4, ensure_ascii=False)
        os.replace(tmp, self.path)


def rows_of(data: Any) -> List[Dict]:
    """Tolerate a single row where a list is expected."""
    if data is None:
        return []
    if isinstance(data, Mapping):
        return [dict(data)]
    return [dict(r) for r in data]
