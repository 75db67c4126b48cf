import asyncio
import logging
from typing import Mapping, Optional, Sequence

from PIL import Image

from renderer.core.bindings import resolve_text
from renderer.core.compositor import Surface, draw_background, draw_image_element, load_element_image
from renderer.core.image_loader import AsyncImageLoader
from renderer.core.models import DataContext, ImageElement, Template, TextElement
from renderer.core.text_layout import draw_text_element
from renderer.core.tracing import NullTracer, Tracer

logger = logging.getLogger(__name__)


def by_z_index(elements):
    """Stable sort, so equal z keeps the stored order."""
    return sorted(elements, key=lambda el: el.z_index)


class TemplateRenderer:
    """
    Draws a Template for one data context:
    - background (sets the surface size)
    - image elements (static, bound URL or QR)
    - text elements (bound or static, wrapped and aligned)
    Layers are always drawn in that order; inside a layer by z_index.
    """

    def __init__(self, loader: Optional[AsyncImageLoader] = None, tracer: Optional[Tracer] = None):
        self.loader = loader or AsyncImageLoader()
        self.tracer = tracer or NullTracer()

    # -------------------------------------------------
    # MAIN RENDER
    # -------------------------------------------------
    async def render(
        self,
        surface: Surface,
        template: Template,
        text_elements: Optional[Sequence[TextElement]] = None,
        image_elements: Optional[Sequence[ImageElement]] = None,
        context: Optional[DataContext] = None,
        *,
        preloaded_background: Optional[Image.Image] = None,
        preloaded_images: Optional[Mapping[str, Image.Image]] = None,
    ) -> Surface:
        if text_elements is None:
            text_elements = template.text_elements
        if image_elements is None:
            image_elements = template.image_elements
        context = context or DataContext()

        with self.tracer.span("render", template=template.id):
            # 1. background
            with self.tracer.span("render.background"):
                await draw_background(surface, template.background_url, self.loader, preloaded_background)

            # 2. images: fetched together, drawn one by one
            images = by_z_index(image_elements)
            with self.tracer.span("render.images", count=len(images)):
                rasters = await asyncio.gather(
                    *(load_element_image(el, context, self.loader, preloaded_images) for el in images)
                )
                for element, raster in zip(images, rasters):
                    draw_image_element(surface, element, raster)

            # 3. text
            texts = by_z_index(text_elements)
            with self.tracer.span("render.text", count=len(texts)):
                for element in texts:
                    content = resolve_text(element.binding, element.static_text, context)
                    draw_text_element(surface.image, element, content)

        logger.debug("Rendered template %s at %dx%d", template.id, *surface.size)
        return surface
