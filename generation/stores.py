"""Store interfaces and the JSON-file implementations used by the desktop editor."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from typing import Dict, List, Optional, Protocol

from renderer.core.errors import PersistFailure, RecordNotFound, TemplateNotFound
from renderer.core.json_loader import TemplateJSONLoader, template_from_document
from renderer.core.models import ImageElement, Template, TextElement

logger = logging.getLogger(__name__)

PROFILES = "user_profiles"
ARTISTS = "makeup_artists"


class TemplateStore(Protocol):
    async def list_templates(self, template_type: Optional[str] = None, name_filter: str = "") -> List[Template]: ...

    async def get_template(self, template_id: str, template_type: Optional[str] = None) -> Template: ...

    async def upsert_template(self, template: Template) -> None: ...

    async def replace_elements(
        self, template_id: str, text_elements: List[TextElement], image_elements: List[ImageElement]
    ) -> None: ...


class RecordStore(Protocol):
    async def get_record(self, table: str, record_id: str) -> Dict: ...

    async def list_records(self, table: str) -> List[Dict]: ...

    async def insert(self, table: str, row: Dict) -> Dict: ...

    async def update_fields(self, table: str, record_id: str, fields: Dict) -> None: ...


class BlobUploader(Protocol):
    async def upload(self, data: bytes, folder: str, filename: str) -> str: ...


# ─────────────────────────────────────────────
# Template catalogue helpers shared by both store implementations
# ─────────────────────────────────────────────

def new_template(name: str = "Untitled", template_type: str = "id_card") -> Template:
    return Template(id=str(uuid.uuid4()), name=name or "Untitled", type=template_type)


async def save_template(store: TemplateStore, template: Template) -> None:
    """Upsert the header, then replace both element tables."""
    await store.upsert_template(template)
    await store.replace_elements(template.id, template.text_elements, template.image_elements)
    logger.info(
        "Saved template %s (%d text, %d image elements)",
        template.id,
        len(template.text_elements),
        len(template.image_elements),
    )


async def import_template(store: TemplateStore, data: Dict) -> Template:
    """Add a template from an exported ``{template, text_elements, image_elements}`` document."""
    template = template_from_document(data)
    await save_template(store, template)
    return template


def _matches(template: Template, template_type: Optional[str], name_filter: str) -> bool:
    if template_type and template.type != template_type:
        return False
    return name_filter.lower() in template.name.lower()


# ─────────────────────────────────────────────
# JSON files
# ─────────────────────────────────────────────

class JSONTemplateStore:
    """One ``<id>.json`` document per template under ``directory``."""

    def __init__(self, directory: str):
        self.directory = directory
        self._lock = asyncio.Lock()

    def _path(self, template_id: str) -> str:
        return os.path.join(self.directory, f"{template_id}.json")

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    def _load_all(self) -> List[Template]:
        if not os.path.isdir(self.directory):
            return []
        out = []
        for name in sorted(os.listdir(self.directory)):
            if not name.endswith(".json"):
                continue
            path = os.path.join(self.directory, name)
            try:
                out.append(TemplateJSONLoader(path).load())
            except (ValueError, KeyError, OSError) as exc:
                logger.warning("Skipping unreadable template file %s: %s", path, exc)
        return out

    async def list_templates(self, template_type: Optional[str] = None, name_filter: str = "") -> List[Template]:
        templates = await self._run(self._load_all)
        return [t for t in templates if _matches(t, template_type, name_filter)]

    async def get_template(self, template_id: str, template_type: Optional[str] = None) -> Template:
        path = self._path(template_id)
        try:
            template = await self._run(TemplateJSONLoader(path).load)
        except FileNotFoundError as exc:
            raise TemplateNotFound(f"Template not found: {template_id}") from exc
        if template_type and template.type != template_type:
            raise TemplateNotFound(f"Template {template_id} is not of type {template_type}")
        return template

    async def _load_or_new(self, template: Template) -> Template:
        try:
            return await self.get_template(template.id)
        except TemplateNotFound:
            return Template(id=template.id)

    async def upsert_template(self, template: Template) -> None:
        async with self._lock:
            current = await self._load_or_new(template)
            current.name = template.name
            current.type = template.type
            current.background_url = template.background_url
            await self._run(TemplateJSONLoader(self._path(template.id)).save, current)

    async def replace_elements(self, template_id, text_elements, image_elements) -> None:
        async with self._lock:
            current = await self.get_template(template_id)
            current.text_elements = list(text_elements)
            current.image_elements = list(image_elements)
            await self._run(TemplateJSONLoader(self._path(template_id)).save, current)


class JSONRecordStore:
    """All records in one JSON file: ``{table: {id: row}}``."""

    def __init__(self, path: str):
        self.path = path
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Dict[str, Dict]]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data) -> None:
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4, ensure_ascii=False)
        os.replace(tmp, self.path)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def get_record(self, table: str, record_id: str) -> Dict:
        data = await self._run(self._read)
        row = data.get(table, {}).get(str(record_id))
        if row is None:
            raise RecordNotFound(f"No {table} record with id {record_id}")
        return dict(row)

    async def list_records(self, table: str) -> List[Dict]:
        data = await self._run(self._read)
        return [dict(r) for r in data.get(table, {}).values()]

    async def insert(self, table: str, row: Dict) -> Dict:
        async with self._lock:
            data = await self._run(self._read)
            row = dict(row)
            row.setdefault("id", str(uuid.uuid4()))
            data.setdefault(table, {})[str(row["id"])] = row
            await self._run(self._write, data)
        return row

    async def update_fields(self, table: str, record_id: str, fields: Dict) -> None:
        async with self._lock:
            data = await self._run(self._read)
            row = data.get(table, {}).get(str(record_id))
            if row is None:
                raise PersistFailure(f"Cannot update missing {table} record {record_id}")
            row.update(fields)
            try:
                await self._run(self._write, data)
            except OSError as exc:
                raise PersistFailure(f"Could not write {self.path}: {exc}") from exc
