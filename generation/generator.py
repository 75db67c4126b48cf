"""End-to-end card generation: fetch, render, rasterize, upload, persist."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Mapping, Optional, Set

from PIL import Image

from generation.settings import Settings, settings as default_settings
from generation.stores import ARTISTS, PROFILES, BlobUploader, RecordStore, TemplateStore
from renderer.core.compositor import Surface
from renderer.core.errors import RecordNotFound, UploadFailure
from renderer.core.models import DataContext
from renderer.core.raster_export import to_jpeg
from renderer.core.renderer import TemplateRenderer
from renderer.core.tracing import LoggingTracer, Tracer

logger = logging.getLogger(__name__)

URL_FIELDS = {
    "id_card": "idcard_url",
    "certificate": "certificate_url",
}


class BackgroundTasks:
    """Fire-and-forget coroutines: never awaited by the caller, failures only logged."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, what: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._done(t, what))
        return task

    def _done(self, task: asyncio.Task, what: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task '%s' was cancelled", what)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task '%s' failed: %s", what, exc)
        else:
            logger.info("Background task '%s' finished", what)

    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for whatever is still running; used before an event loop shuts down."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CardGenerator:
    def __init__(
        self,
        templates: TemplateStore,
        records: RecordStore,
        uploader: BlobUploader,
        renderer: Optional[TemplateRenderer] = None,
        cfg: Optional[Settings] = None,
        tracer: Optional[Tracer] = None,
    ):
        self.templates = templates
        self.records = records
        self.uploader = uploader
        self.cfg = cfg or default_settings
        self.tracer = tracer or LoggingTracer(logger)
        self.renderer = renderer or TemplateRenderer(tracer=self.tracer)

    async def load_context(self, artist_id: str):
        artist = await self.records.get_record(ARTISTS, artist_id)
        profile_id = artist.get("user_profile_id")
        if not profile_id:
            raise RecordNotFound(f"Artist {artist_id} has no linked user profile")
        profile = await self.records.get_record(PROFILES, profile_id)
        return DataContext(profile=profile, artist=artist)

    async def render(
        self,
        template_type: str,
        template_id: str,
        artist_id: str,
        preloaded_background: Optional[Image.Image] = None,
        preloaded_images: Optional[Mapping[str, Image.Image]] = None,
    ) -> Image.Image:
        """Steps 1-5: the rendered RGBA image, nothing uploaded."""
        with self.tracer.span("generate.fetch", artist=artist_id, template=template_id):
            context, template = await asyncio.gather(
                self.load_context(artist_id),
                self.templates.get_template(template_id, template_type),
            )

        surface = Surface(self.cfg.DEFAULT_SURFACE_WIDTH, self.cfg.DEFAULT_SURFACE_HEIGHT)
        await self.renderer.render(
            surface,
            template,
            template.text_elements,
            template.image_elements,
            context,
            preloaded_background=preloaded_background,
            preloaded_images=preloaded_images,
        )
        return surface.image

    async def generate(
        self,
        template_type: str,
        template_id: str,
        artist_id: str,
        preloaded_background: Optional[Image.Image] = None,
        preloaded_images: Optional[Mapping[str, Image.Image]] = None,
    ) -> str:
        """Render the template for one artist, upload it and store the URL on the artist.

        Raises NotFoundError, UploadFailure or PersistFailure; nothing is
        persisted unless the upload returned a URL.
        """
        url_field = URL_FIELDS.get(template_type)
        if url_field is None:
            raise ValueError(f"Unknown template type: {template_type}")

        logger.info("Generating %s %s for artist %s", template_type, template_id, artist_id)
        with self.tracer.span("generate", type=template_type, template=template_id, artist=artist_id):
            image = await self.render(template_type, template_id, artist_id, preloaded_background, preloaded_images)

            with self.tracer.span("generate.rasterize"):
                loop = asyncio.get_running_loop()
                data = await loop.run_in_executor(
                    None, to_jpeg, image, self.cfg.JPEG_QUALITY, self.cfg.output_limit()
                )

            with self.tracer.span("generate.upload", size=len(data)):
                url = await self.uploader.upload(
                    data, self.cfg.folder_for(template_type), f"{template_type}_{artist_id}.jpg"
                )
                if not url:
                    raise UploadFailure("Rendered image upload returned no URL")

            with self.tracer.span("generate.persist"):
                await self.records.update_fields(ARTISTS, artist_id, {url_field: url})

        logger.info("Generated %s for artist %s: %s", template_type, artist_id, url)
        return url
