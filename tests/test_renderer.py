import logging

import pytest

from renderer.core.bindings import resolve_text
from renderer.core.compositor import Surface, element_source
from renderer.core.image_loader import AsyncImageLoader
from renderer.core.models import BindingEntry, DataContext, ImageElement, QRPayloadSpec, Template, TextElement
from renderer.core.renderer import TemplateRenderer, by_z_index
from renderer.core.text_layout import draw_text_element

from conftest import FakeLoader

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
GREEN = (0, 255, 0, 255)
WHITE = (255, 255, 255, 255)


@pytest.fixture
def loader(solid):
    return FakeLoader({"red.png": solid(RED), "blue.png": solid(BLUE)})


@pytest.fixture
def renderer(loader, tracer):
    return TemplateRenderer(loader=loader, tracer=tracer)


@pytest.fixture
def context():
    return DataContext(
        profile={"full_name": "Jane Doe", "whatsapp_number": "+91 900", "photo": "red.png"},
        artist={"city": "Pune"},
    )


async def test_images_drawn_in_z_order(renderer):
    template = Template(
        id="t1",
        image_elements=[
            ImageElement(id="top", x=0, y=0, width=40, height=40, z_index=2, image_url="red.png"),
            ImageElement(id="bottom", x=20, y=20, width=40, height=40, z_index=1, image_url="blue.png"),
        ],
    )
    surface = await renderer.render(Surface(), template)
    assert surface.image.getpixel((30, 30)) == RED
    assert surface.image.getpixel((50, 50)) == BLUE


async def test_equal_z_keeps_stored_order(renderer):
    template = Template(
        id="t1",
        image_elements=[
            ImageElement(id="a", x=0, y=0, width=40, height=40, image_url="red.png"),
            ImageElement(id="b", x=0, y=0, width=40, height=40, image_url="blue.png"),
        ],
    )
    surface = await renderer.render(Surface(), template)
    assert surface.image.getpixel((10, 10)) == BLUE
    assert [el.id for el in by_z_index(template.image_elements)] == ["a", "b"]


async def test_qr_element_ignores_image_url(renderer, loader, context):
    template = Template(
        id="t1",
        image_elements=[
            ImageElement(
                id="qr", x=10, y=10, width=100, height=100,
                image_url="https://never.test/x.png", qr=QRPayloadSpec(),
            )
        ],
    )
    surface = await renderer.render(Surface(), template, context=context)
    assert loader.requested == []
    assert surface.image.getpixel((10, 10))[:3] == (0, 0, 0)


async def test_qr_without_data_is_skipped(renderer, loader, caplog):
    template = Template(
        id="t1",
        image_elements=[ImageElement(id="qr", x=10, y=10, width=100, height=100, qr=QRPayloadSpec())],
    )
    with caplog.at_level(logging.WARNING):
        surface = await renderer.render(Surface(), template, context=DataContext())
    assert surface.image.getpixel((15, 15)) == WHITE
    assert "QR element qr skipped" in caplog.text


async def test_bad_asset_is_skipped(renderer, caplog):
    template = Template(
        id="t1",
        image_elements=[
            ImageElement(id="broken", x=0, y=0, width=40, height=40, image_url="missing.png"),
            ImageElement(id="ok", x=100, y=0, width=40, height=40, image_url="red.png"),
        ],
    )
    with caplog.at_level(logging.WARNING):
        surface = await renderer.render(Surface(), template)
    assert surface.image.getpixel((10, 10)) == WHITE
    assert surface.image.getpixel((110, 10)) == RED
    assert "broken" in caplog.text


@pytest.mark.parametrize(
    "make_source",
    [lambda folder: "data:image/png;base64,abc", lambda folder: str(folder)],
    ids=["malformed-data-url", "directory"],
)
async def test_unreadable_sources_are_skipped(tmp_path, solid, tracer, caplog, make_source):
    red = tmp_path / "red.png"
    solid(RED).save(red)
    bad_source = make_source(tmp_path)
    template = Template(
        id="t1",
        image_elements=[
            ImageElement(id="broken", x=0, y=0, width=40, height=40, image_url=bad_source),
            ImageElement(id="ok", x=100, y=0, width=40, height=40, image_url=str(red)),
        ],
    )
    with caplog.at_level(logging.WARNING):
        surface = await TemplateRenderer(AsyncImageLoader(), tracer).render(Surface(), template)
    assert surface.image.getpixel((10, 10)) == WHITE
    assert surface.image.getpixel((110, 10)) == RED
    assert "Image element broken skipped" in caplog.text


async def test_unexpected_loader_error_is_skipped(solid, tracer, caplog):
    class Exploding(FakeLoader):
        async def load(self, source):
            if source == "bomb.png":
                raise RuntimeError("kaboom")
            return await super().load(source)

    template = Template(
        id="t1",
        image_elements=[
            ImageElement(id="bomb", x=0, y=0, width=40, height=40, image_url="bomb.png"),
            ImageElement(id="ok", x=100, y=0, width=40, height=40, image_url="red.png"),
        ],
    )
    with caplog.at_level(logging.WARNING):
        surface = await TemplateRenderer(Exploding({"red.png": solid(RED)}), tracer).render(Surface(), template)
    assert surface.image.getpixel((110, 10)) == RED
    assert "kaboom" in caplog.text


async def test_bound_url_and_literal_fallback(renderer, loader, context):
    bound = ImageElement(id="b", x=0, y=0, width=40, height=40,
                         binding=(BindingEntry("profile", "photo"),), image_url="blue.png")
    unbound = ImageElement(id="u", x=100, y=0, width=40, height=40,
                           binding=(BindingEntry("profile", "missing"),), image_url="blue.png")
    assert element_source(bound, context) == "red.png"
    assert element_source(unbound, context) == "blue.png"

    surface = await renderer.render(Surface(), Template(id="t", image_elements=[bound, unbound]), context=context)
    assert surface.image.getpixel((10, 10)) == RED
    assert surface.image.getpixel((110, 10)) == BLUE


async def test_preloaded_images_skip_loading(renderer, loader, solid, context):
    element = ImageElement(id="p", x=0, y=0, width=40, height=40,
                           binding=(BindingEntry("profile", "profile_photo_url"),))
    surface = await renderer.render(
        Surface(), Template(id="t", image_elements=[element]), context=context,
        preloaded_images={"profile_photo_url": solid(GREEN)},
    )
    assert loader.requested == []
    assert surface.image.getpixel((20, 20)) == GREEN


async def test_background_sets_surface_size(renderer, solid):
    surface = await renderer.render(
        Surface(), Template(id="t"), preloaded_background=solid(BLUE, size=(300, 200))
    )
    assert surface.size == (300, 200)
    assert surface.image.getpixel((299, 199)) == BLUE


async def test_unloadable_background_keeps_default_surface(renderer, caplog):
    with caplog.at_level(logging.WARNING):
        surface = await renderer.render(Surface(), Template(id="t", background_url="gone.png"))
    assert surface.size == (1000, 600)
    assert "Background not loaded" in caplog.text


async def test_text_falls_back_and_is_drawn_over_images(renderer, context, solid):
    image = ImageElement(id="i", x=0, y=0, width=300, height=80, image_url="red.png", z_index=9)
    text = TextElement(
        id="txt", x=0, y=0, width=300, height=80, font_size=32, z_index=0,
        binding=(BindingEntry("profile", "instagram", fallback="Unknown"),),
        text_color="#000000",
    )
    template = Template(id="t", image_elements=[image], text_elements=[text])
    assert resolve_text(text.binding, text.static_text, context) == "Unknown"

    surface = await renderer.render(Surface(), template, context=context)

    def drawn_with(content):
        expected = Surface()
        expected.paste(solid(RED), image.box)
        draw_text_element(expected.image, text, content)
        return expected.image.tobytes()

    # text is a later layer than every image, whatever their z
    assert surface.image.tobytes() == drawn_with("Unknown")
    assert surface.image.tobytes() != drawn_with("Jane Doe")


async def test_render_reports_spans(renderer, tracer):
    await renderer.render(Surface(), Template(id="t"))
    assert tracer.names() == ["render.background", "render.images", "render.text", "render"]
    assert all(not span.failed for span in tracer.spans)
    assert tracer.spans[-1].fields == {"template": "t"}
