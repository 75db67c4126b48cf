import base64
import logging

import pytest

from renderer.core.errors import AssetLoadFailure
from renderer.core.image_loader import AsyncImageLoader, ImageLoader


def data_url(raw):
    return "data:image/png;base64," + base64.b64encode(raw).decode("ascii")


def test_preview_loader_reads_data_urls_and_files(tmp_path, png_bytes):
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes(size=(30, 20)))
    loader = ImageLoader()
    assert loader.load(data_url(png_bytes(size=(8, 6)))).size == (8, 6)
    assert loader.load(str(path)).mode == "RGBA"
    assert loader.load("") is None


@pytest.mark.parametrize(
    "make_source",
    [
        lambda folder: "data:image/png;base64,abc",
        lambda folder: str(folder),
        lambda folder: str(folder / "missing.png"),
        lambda folder: data_url(b"not an image"),
    ],
    ids=["malformed-data-url", "directory", "missing-file", "not-an-image"],
)
def test_preview_loader_returns_none_for_unreadable_sources(tmp_path, caplog, make_source):
    with caplog.at_level(logging.WARNING):
        assert ImageLoader().load(make_source(tmp_path)) is None
    assert "could not load" in caplog.text


async def test_async_loader_wraps_decode_and_read_errors(tmp_path):
    loader = AsyncImageLoader()
    with pytest.raises(AssetLoadFailure, match="malformed base64"):
        await loader.load("data:image/png;base64,abc")
    with pytest.raises(AssetLoadFailure) as info:
        await loader.load(str(tmp_path))
    assert info.value.step == "load_asset"
