# generation/cloudinary_upload.py
import asyncio
import logging
import mimetypes
import os
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from generation.settings import Settings, settings as default_settings
from renderer.core.errors import UnsupportedUploadType, UploadFailure

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"


def configure(cfg: Settings) -> None:
    """Configure once (supports CLOUDINARY_URL or split vars)."""
    if cfg.CLOUDINARY_URL:
        os.environ.setdefault("CLOUDINARY_URL", cfg.CLOUDINARY_URL)
        cloudinary.reset_config()
        cloudinary.config(secure=True)
        return
    cloudinary.config(
        cloud_name=cfg.CLOUDINARY_CLOUD_NAME,
        api_key=cfg.CLOUDINARY_API_KEY,
        api_secret=cfg.CLOUDINARY_API_SECRET,
        secure=True,
    )


def sniff_type(data: bytes, filename: str) -> str:
    """MIME type from magic bytes, falling back to the file name."""
    head = data[:12]
    if head.startswith(b"%PDF"):
        return PDF_MIME
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head.startswith(b"\x89PNG"):
        return "image/png"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    if head[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or "application/octet-stream"


def attachment_url(url: str) -> str:
    """Download form of a delivered PDF."""
    return url.replace("/upload/", "/upload/fl_attachment/", 1)


class CloudinaryUploader:
    """Blob upload for images and PDF documents; anything else is rejected."""

    def __init__(self, cfg: Optional[Settings] = None):
        configure(cfg or default_settings)

    async def upload(self, data: bytes, folder: str, filename: str) -> str:
        mime = sniff_type(data, filename)
        is_pdf = mime == PDF_MIME
        if not (is_pdf or mime.startswith("image/")):
            raise UnsupportedUploadType(f"Only image and PDF uploads are supported, got {mime}")

        public_id = os.path.splitext(os.path.basename(filename))[0] or None
        loop = asyncio.get_running_loop()
        try:
            res = await loop.run_in_executor(None, self._upload_sync, data, folder, public_id)
        except (cloudinary.exceptions.Error, OSError) as exc:
            raise UploadFailure(f"Upload of {filename} to '{folder}' failed: {exc}") from exc

        url = res.get("secure_url") if isinstance(res, dict) else None
        if not url:
            raise UploadFailure(f"Upload of {filename} returned no URL")

        logger.info("Uploaded %s (%s) to %s", filename, mime, url)
        return attachment_url(url) if is_pdf else url

    @staticmethod
    def _upload_sync(data: bytes, folder: str, public_id: Optional[str]):
        # PDFs go up as "image" so Cloudinary can still derive previews
        return cloudinary.uploader.upload(
            BytesIO(data),
            resource_type="image",
            folder=folder,
            public_id=public_id,
            overwrite=True,
        )
