from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
import os
from typing import Optional

import aiohttp
import requests
from PIL import Image, UnidentifiedImageError

from .errors import AssetLoadFailure

logger = logging.getLogger(__name__)


def _is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _decode_data_url(source: str) -> bytes:
    header, _, payload = source.partition(",")
    if ";base64" not in header:
        return payload.encode("utf-8")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AssetLoadFailure(source, "(malformed base64 data URL)") from exc


def _open(data: bytes, source: str) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise AssetLoadFailure(source, "(not a readable image)") from exc
    return img.convert("RGBA")


def _read_file(path: str) -> bytes:
    if not os.path.exists(path):
        raise AssetLoadFailure(path, "(file not found)")
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as exc:
        raise AssetLoadFailure(path, f"({exc.strerror or exc.__class__.__name__})") from exc


class ImageLoader:
    """Blocking loader used by the editor preview (http via requests, files, data URLs)."""

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def load(self, source: Optional[str]) -> Optional[Image.Image]:
        """Load image safely. Returns None if the source is empty or unreadable."""
        if not source:
            return None
        try:
            return _open(self.fetch(source), source)
        except AssetLoadFailure as exc:
            logger.warning("%s", exc)
            return None

    def fetch(self, source: str) -> bytes:
        if source.startswith("data:"):
            return _decode_data_url(source)
        if _is_remote(source):
            try:
                resp = requests.get(source, timeout=self.timeout)
                resp.raise_for_status()
            except (requests.RequestException, ValueError) as exc:
                raise AssetLoadFailure(source, f"({exc})") from exc
            return resp.content
        return _read_file(source)


class AsyncImageLoader:
    """Loader used by the renderer; raises :class:`AssetLoadFailure`.

    Pass an existing ``aiohttp.ClientSession`` to share connections; otherwise
    a short-lived session is opened per remote fetch.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = 30):
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def load(self, source: Optional[str]) -> Image.Image:
        if not source:
            raise AssetLoadFailure("", "(empty source)")
        return _open(await self.fetch(source), source)

    async def fetch(self, source: str) -> bytes:
        if source.startswith("data:"):
            return _decode_data_url(source)
        if _is_remote(source):
            return await self._fetch_remote(source)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _read_file, source)

    async def _fetch_remote(self, url: str) -> bytes:
        try:
            if self.session is not None:
                return await self._get(self.session, url)
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._get(session, url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise AssetLoadFailure(url, f"({exc.__class__.__name__})") from exc

    async def _get(self, session: aiohttp.ClientSession, url: str) -> bytes:
        async with session.get(url, timeout=self.timeout) as resp:
            if resp.status != 200:
                raise AssetLoadFailure(url, f"(HTTP {resp.status})")
            return await resp.read()
