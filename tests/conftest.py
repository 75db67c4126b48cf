import copy
import os
import sys
import uuid

import pytest
from PIL import Image

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from generation.settings import Settings  # noqa: E402
from generation.supabase_rest import SupabaseRest  # noqa: E402
from renderer.core.errors import AssetLoadFailure, PersistFailure, RecordNotFound, TemplateNotFound  # noqa: E402
from renderer.core.tracing import RecordingTracer  # noqa: E402


# ─────────────────────────────────────────────
# In-memory collaborators
# ─────────────────────────────────────────────

class MemoryTemplateStore:
    def __init__(self, templates=()):
        self.templates = {t.id: t for t in templates}

    async def list_templates(self, template_type=None, name_filter=""):
        return [
            t for t in self.templates.values()
            if (not template_type or t.type == template_type) and name_filter.lower() in t.name.lower()
        ]

    async def get_template(self, template_id, template_type=None):
        template = self.templates.get(template_id)
        if template is None or (template_type and template.type != template_type):
            raise TemplateNotFound(f"Template not found: {template_id}")
        return copy.deepcopy(template)

    async def upsert_template(self, template):
        current = self.templates.get(template.id)
        keep = copy.deepcopy(template)
        if current is not None:
            keep.text_elements = current.text_elements
            keep.image_elements = current.image_elements
        self.templates[template.id] = keep

    async def replace_elements(self, template_id, text_elements, image_elements):
        self.templates[template_id].text_elements = list(text_elements)
        self.templates[template_id].image_elements = list(image_elements)


class MemoryRecordStore:
    def __init__(self, tables=None):
        self.tables = {name: dict(rows) for name, rows in (tables or {}).items()}
        self.updates = []

    async def get_record(self, table, record_id):
        row = self.tables.get(table, {}).get(record_id)
        if row is None:
            raise RecordNotFound(f"No {table} record with id {record_id}")
        return dict(row)

    async def list_records(self, table):
        return [dict(r) for r in self.tables.get(table, {}).values()]

    async def insert(self, table, row):
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        self.tables.setdefault(table, {})[row["id"]] = row
        return dict(row)

    async def update_fields(self, table, record_id, fields):
        row = self.tables.get(table, {}).get(record_id)
        if row is None:
            raise PersistFailure(f"Cannot update missing {table} record {record_id}")
        row.update(fields)
        self.updates.append((table, record_id, dict(fields)))


class FakeUploader:
    def __init__(self, fail_with=None, url_for=None, fail_folders=()):
        self.fail_with = fail_with
        self.url_for = url_for
        self.fail_folders = set(fail_folders)
        self.calls = []

    async def upload(self, data, folder, filename):
        self.calls.append((data, folder, filename))
        if self.fail_with is not None and (not self.fail_folders or folder in self.fail_folders):
            raise self.fail_with
        if self.url_for is not None:
            return self.url_for(folder, filename)
        return f"https://cdn.test/{folder}/{filename}"


class FakeLoader:
    """Serves images by source; unknown sources fail like a broken URL."""

    def __init__(self, images=None):
        self.images = dict(images or {})
        self.requested = []

    async def load(self, source):
        self.requested.append(source)
        if source not in self.images:
            raise AssetLoadFailure(source, "(not served)")
        return self.images[source].copy()


class FakeAccounts:
    def __init__(self, user_id="auth-user-1"):
        self.user_id = user_id
        self.calls = []

    async def create_account(self, email, password):
        self.calls.append(email)
        return self.user_id


class CannedRest(SupabaseRest):
    """PostgREST client answering from ``{(method, table): rows or exception}``."""

    def __init__(self, responses):
        super().__init__("https://db.test", "key")
        self.responses = responses
        self.calls = []

    async def request(self, method, table, params=None, payload=None, prefer=None):
        self.calls.append((method, table, params, payload, prefer))
        result = self.responses.get((method, table))
        if isinstance(result, Exception):
            raise result
        return result


# ─────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────

@pytest.fixture
def cfg():
    return Settings(_env_file=None)


@pytest.fixture
def tracer():
    return RecordingTracer()


@pytest.fixture
def solid():
    def make(color, size=(40, 40)):
        return Image.new("RGBA", size, color)
    return make


@pytest.fixture
def png_bytes():
    def make(size=(64, 48), color=(200, 30, 30)):
        import io

        buf = io.BytesIO()
        Image.new("RGB", size, color).save(buf, format="PNG")
        return buf.getvalue()
    return make
