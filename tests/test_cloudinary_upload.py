import cloudinary.exceptions
import pytest

from generation.cloudinary_upload import CloudinaryUploader, attachment_url, sniff_type
from renderer.core.errors import UnsupportedUploadType, UploadFailure


@pytest.mark.parametrize(
    "data, name, expected",
    [
        (b"%PDF-1.7 ...", "x.bin", "application/pdf"),
        (b"\xff\xd8\xff\xe0....", "x", "image/jpeg"),
        (b"\x89PNG\r\n\x1a\n....", "x", "image/png"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "x", "image/webp"),
        (b"GIF89a......", "x", "image/gif"),
        (b"hello", "notes.txt", "text/plain"),
        (b"hello", "", "application/octet-stream"),
    ],
)
def test_sniff_type(data, name, expected):
    assert sniff_type(data, name) == expected


def test_attachment_url():
    url = "https://res.cloudinary.com/demo/image/upload/v1/portfolios/cv.pdf"
    assert attachment_url(url) == "https://res.cloudinary.com/demo/image/upload/fl_attachment/v1/portfolios/cv.pdf"


@pytest.fixture
def uploader(cfg, monkeypatch):
    calls = []

    def fake_upload(data, folder, public_id):
        calls.append((folder, public_id))
        return {"secure_url": f"https://res.cloudinary.com/demo/image/upload/v1/{folder}/{public_id}"}

    monkeypatch.setattr(CloudinaryUploader, "_upload_sync", staticmethod(fake_upload))
    up = CloudinaryUploader(cfg)
    up.calls = calls
    return up


async def test_upload_image(uploader, png_bytes):
    url = await uploader.upload(png_bytes(), "id_cards", "id_card_a1.jpg")
    assert url == "https://res.cloudinary.com/demo/image/upload/v1/id_cards/id_card_a1"
    assert uploader.calls == [("id_cards", "id_card_a1")]


async def test_upload_pdf_returns_download_url(uploader):
    url = await uploader.upload(b"%PDF-1.4", "portfolios", "cv.pdf")
    assert "/upload/fl_attachment/" in url


async def test_upload_rejects_other_types(uploader):
    with pytest.raises(UnsupportedUploadType):
        await uploader.upload(b"just text", "docs", "notes.txt")
    assert uploader.calls == []


async def test_upload_errors_are_wrapped(cfg, monkeypatch, png_bytes):
    def failing(data, folder, public_id):
        raise cloudinary.exceptions.Error("bad credentials")

    monkeypatch.setattr(CloudinaryUploader, "_upload_sync", staticmethod(failing))
    with pytest.raises(UploadFailure) as info:
        await CloudinaryUploader(cfg).upload(png_bytes(), "logos", "logo.jpg")
    assert isinstance(info.value.__cause__, cloudinary.exceptions.Error)


async def test_upload_without_url_fails(cfg, monkeypatch, png_bytes):
    monkeypatch.setattr(CloudinaryUploader, "_upload_sync", staticmethod(lambda *a: {}))
    with pytest.raises(UploadFailure):
        await CloudinaryUploader(cfg).upload(png_bytes(), "logos", "logo.jpg")
