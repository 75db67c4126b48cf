"""Dataclasses that describe templates, elements, bindings and the data context."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

TEMPLATE_TYPES = ("certificate", "id_card")
ALIGNMENTS = ("left", "center", "right", "justify")
OBJECT_FITS = ("contain", "cover", "fill", "none", "scale-down")
TRANSFORMS = ("uppercase", "lowercase", "capitalize")

PROFILE = "profile"
ARTIST = "artist"
# table names used by stored bindings point at the same namespaces
NAMESPACE_ALIASES = {
    PROFILE: PROFILE,
    ARTIST: ARTIST,
    "user_profiles": PROFILE,
    "makeup_artists": ARTIST,
}


# ─────────────────────────────────────────────
# Bindings
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class BindingEntry:
    source: str
    field: str
    fallback: Optional[str] = None
    transform: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {"source": self.source, "field": self.field}
        if self.fallback is not None:
            data["fallback"] = self.fallback
        if self.transform:
            data["transform"] = self.transform
        return data


@dataclass(frozen=True)
class TemplateBinding:
    """``{"template": "Hello {{profile.full_name}}"}``"""

    template: str

    def to_dict(self) -> Dict:
        return {"template": self.template}


BindingConfig = Union[TemplateBinding, Tuple[BindingEntry, ...], None]


def binding_from_json(raw: Any) -> BindingConfig:
    """Parse the persisted JSON shape of a binding config.

    Accepted: ``None``, ``{"template": ...}``, ``[{"template": ...}]`` and
    ``[{source, field, fallback?, transform?}, ...]``. An empty list is ``None``.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        return TemplateBinding(raw) if raw else None
    if isinstance(raw, Mapping):
        if "template" in raw:
            return TemplateBinding(str(raw.get("template") or ""))
        raw = [raw]
    if not isinstance(raw, (list, tuple)) or not raw:
        return None

    if len(raw) == 1 and isinstance(raw[0], Mapping) and "template" in raw[0]:
        return TemplateBinding(str(raw[0].get("template") or ""))

    entries = []
    for item in raw:
        if not isinstance(item, Mapping):
            logger.debug("Skipping malformed binding entry %r", item)
            continue
        transform = item.get("transform") or None
        if transform not in TRANSFORMS:
            transform = None
        entries.append(
            BindingEntry(
                source=str(item.get("source") or ""),
                field=str(item.get("field") or ""),
                fallback=item.get("fallback"),
                transform=transform,
            )
        )
    return tuple(entries) or None


def binding_to_json(binding: BindingConfig) -> Any:
    if binding is None:
        return []
    if isinstance(binding, TemplateBinding):
        return [binding.to_dict()]
    return [entry.to_dict() for entry in binding]


# ─────────────────────────────────────────────
# Elements
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class QRPayloadSpec:
    """Which data-context keys feed the QR payload fields."""

    name_field: str = "full_name"
    number_field: str = "whatsapp_number"
    city_field: str = "city"
    error_correction: str = "M"

    def to_dict(self) -> Dict:
        return {
            "name": self.name_field,
            "number": self.number_field,
            "city": self.city_field,
            "error_correction": self.error_correction,
        }


@dataclass(frozen=True)
class TextElement:
    id: str
    x: float = 0.0
    y: float = 0.0
    width: float = 150.0
    height: float = 40.0
    z_index: int = 0
    binding: BindingConfig = None
    static_text: str = ""
    font: str = "Poppins"
    font_size: float = 16.0
    line_height: float = 1.3
    text_color: str = "#000000"
    background_color: Optional[str] = None
    background_opacity: float = 0.0
    alignment: str = "left"
    wrap: bool = False

    type = "text"

    @property
    def box(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class ImageElement:
    id: str
    x: float = 0.0
    y: float = 0.0
    width: float = 200.0
    height: float = 200.0
    z_index: int = 0
    binding: BindingConfig = None
    image_url: str = ""
    object_fit: str = "contain"
    qr: Optional[QRPayloadSpec] = None

    type = "image"

    @property
    def box(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)

    def first_binding(self) -> Optional[BindingEntry]:
        if isinstance(self.binding, tuple) and self.binding:
            return self.binding[0]
        return None


Element = Union[TextElement, ImageElement]


@dataclass
class Template:
    id: str
    name: str = "Untitled"
    type: str = "id_card"
    background_url: str = ""
    text_elements: List[TextElement] = field(default_factory=list)
    image_elements: List[ImageElement] = field(default_factory=list)

    @property
    def elements(self) -> List[Element]:
        return [*self.image_elements, *self.text_elements]


# ─────────────────────────────────────────────
# Data context
# ─────────────────────────────────────────────

class DataContext:
    """Two record namespaces, looked up by tag with a merged fallback.

    ``lookup("profile", key)`` reads the profile record first; a key it does
    not carry is taken from the merged view (artist fields win on collision).
    Table names ``user_profiles`` / ``makeup_artists`` alias the namespaces.
    """

    def __init__(self, profile: Optional[Mapping] = None, artist: Optional[Mapping] = None):
        self.namespaces: Dict[str, Dict] = {
            PROFILE: dict(profile or {}),
            ARTIST: dict(artist or {}),
        }
        self._merged = {**self.namespaces[PROFILE], **self.namespaces[ARTIST]}
        collisions = set(self.namespaces[PROFILE]) & set(self.namespaces[ARTIST])
        if collisions:
            logger.debug("Data context field collisions (artist wins in merged view): %s", sorted(collisions))

    @classmethod
    def from_mapping(cls, data: Optional[Mapping]) -> "DataContext":
        """Build from ``{"user_profiles": {...}, "makeup_artists": {...}}`` style mappings."""
        data = data or {}
        profile: Dict = {}
        artist: Dict = {}
        for key, value in data.items():
            ns = NAMESPACE_ALIASES.get(key)
            if ns == PROFILE and isinstance(value, Mapping):
                profile.update(value)
            elif ns == ARTIST and isinstance(value, Mapping):
                artist.update(value)
        return cls(profile, artist)

    def namespace(self, source: Optional[str]) -> Optional[Mapping]:
        ns = NAMESPACE_ALIASES.get(source or "")
        if ns is None:
            return None
        return self.namespaces[ns]

    def lookup(self, source: Optional[str], key: str) -> Any:
        record = self.namespace(source)
        if record is None:
            return None
        if key in record:
            return record[key]
        return self._merged.get(key)

    def merged(self) -> Dict:
        return dict(self._merged)

    def __bool__(self) -> bool:
        return bool(self._merged)
