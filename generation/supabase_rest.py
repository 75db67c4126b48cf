"""Template and record stores backed by a PostgREST endpoint (Supabase REST API)."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Dict, List, Optional

import aiohttp

from renderer.core.errors import NotFoundError, PersistFailure, RecordNotFound, TemplateNotFound
from renderer.core.json_loader import (
    image_element_to_row,
    rows_of,
    template_from_rows,
    template_row,
    text_element_to_row,
)
from renderer.core.models import Template

logger = logging.getLogger(__name__)


class RestError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status


class SupabaseRest:
    """Thin PostgREST client: ``/rest/v1/<table>?col=eq.value``."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 30, session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def request(self, method: str, table: str, params=None, payload=None, prefer: Optional[str] = None):
        url = f"{self.base_url}/{table}"
        headers = self._headers({"Prefer": prefer} if prefer else None)
        try:
            if self._session is not None:
                return await self._send(self._session, method, url, params, payload, headers)
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._send(session, method, url, params, payload, headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RestError(0, f"{method} {table} failed: {exc.__class__.__name__}") from exc

    async def _send(self, session, method, url, params, payload, headers):
        async with session.request(method, url, params=params, json=payload, headers=headers, timeout=self.timeout) as resp:
            if resp.status >= 400:
                raise RestError(resp.status, await resp.text())
            body = await resp.text()
            if not body:
                return None
            return json.loads(body)

    async def select(self, table: str, **filters) -> List[Dict]:
        params = {"select": "*"}
        params.update({k: f"eq.{v}" for k, v in filters.items()})
        return rows_of(await self.request("GET", table, params=params))


# ─────────────────────────────────────────────
# Stores
# ─────────────────────────────────────────────

class RestTemplateStore:
    def __init__(self, client: SupabaseRest):
        self.client = client

    async def list_templates(self, template_type: Optional[str] = None, name_filter: str = "") -> List[Template]:
        params = {"select": "*", "order": "name.asc"}
        if template_type:
            params["type"] = f"eq.{template_type}"
        if name_filter:
            params["name"] = f"ilike.*{name_filter}*"
        try:
            rows = rows_of(await self.client.request("GET", "templates", params=params))
        except RestError as exc:
            raise NotFoundError(f"Template listing failed: {exc}") from exc
        return [template_from_rows(r) for r in rows]

    async def get_template(self, template_id: str, template_type: Optional[str] = None) -> Template:
        filters = {"id": template_id}
        if template_type:
            filters["type"] = template_type
        try:
            rows = await self.client.select("templates", **filters)
        except RestError as exc:
            raise TemplateNotFound(f"Template fetch failed: {exc}") from exc
        if not rows:
            raise TemplateNotFound(f"Template not found: {template_id}")

        # element tables are read together; either failing aborts the fetch
        text_rows, image_rows = await asyncio.gather(
            self.client.select("text_elements", template_id=template_id),
            self.client.select("image_elements", template_id=template_id),
            return_exceptions=True,
        )
        for table, result in (("text_elements", text_rows), ("image_elements", image_rows)):
            if isinstance(result, Exception):
                logger.error("Error fetching %s for %s: %s", table, template_id, result)
                raise TemplateNotFound(f"Template {template_id}: {table} fetch failed: {result}") from result
        return template_from_rows(rows[0], text_rows, image_rows)

    async def upsert_template(self, template: Template) -> None:
        try:
            await self.client.request(
                "POST", "templates", payload=[template_row(template)], prefer="resolution=merge-duplicates"
            )
        except RestError as exc:
            raise PersistFailure(f"Template upsert failed: {exc}") from exc

    async def replace_elements(self, template_id, text_elements, image_elements) -> None:
        try:
            for table, rows in (
                ("text_elements", [text_element_to_row(el, template_id) for el in text_elements]),
                ("image_elements", [image_element_to_row(el, template_id) for el in image_elements]),
            ):
                await self.client.request("DELETE", table, params={"template_id": f"eq.{template_id}"})
                if rows:
                    await self.client.request("POST", table, payload=rows)
        except RestError as exc:
            raise PersistFailure(f"Replacing elements of {template_id} failed: {exc}") from exc


class RestRecordStore:
    def __init__(self, client: SupabaseRest):
        self.client = client

    async def get_record(self, table: str, record_id: str) -> Dict:
        try:
            rows = await self.client.select(table, id=record_id)
        except RestError as exc:
            raise RecordNotFound(f"{table} fetch failed: {exc}") from exc
        if not rows:
            raise RecordNotFound(f"No {table} record with id {record_id}")
        return rows[0]

    async def list_records(self, table: str) -> List[Dict]:
        try:
            return await self.client.select(table)
        except RestError as exc:
            raise NotFoundError(f"{table} listing failed: {exc}") from exc

    async def insert(self, table: str, row: Dict) -> Dict:
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        try:
            created = rows_of(await self.client.request("POST", table, payload=[row], prefer="return=representation"))
        except RestError as exc:
            raise PersistFailure(f"Insert into {table} failed: {exc}") from exc
        return created[0] if created else row

    async def update_fields(self, table: str, record_id: str, fields: Dict) -> None:
        try:
            updated = await self.client.request(
                "PATCH", table, params={"id": f"eq.{record_id}"}, payload=fields, prefer="return=representation"
            )
        except RestError as exc:
            raise PersistFailure(f"Update of {table} {record_id} failed: {exc}") from exc
        if not rows_of(updated):
            raise PersistFailure(f"Update of {table} {record_id} matched no row")


class SupabaseAuth:
    """Account creation through ``/auth/v1/signup``."""

    def __init__(self, client: SupabaseRest):
        self.client = client
        self.url = client.base_url[: -len("/rest/v1")] + "/auth/v1/signup"

    async def create_account(self, email: str, password: str) -> Optional[str]:
        try:
            async with aiohttp.ClientSession(timeout=self.client.timeout) as session:
                async with session.post(
                    self.url, json={"email": email, "password": password}, headers=self.client._headers()
                ) as resp:
                    body = await resp.json(content_type=None)
                    if resp.status >= 400:
                        raise RestError(resp.status, (body or {}).get("msg", "sign-up failed"))
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RestError(0, f"sign-up failed: {exc.__class__.__name__}") from exc

        # with email confirmation on, the user object has no session yet but still an id
        user = (body or {}).get("user") or body or {}
        return user.get("id")
