"""Error taxonomy for template rendering and card generation."""

from __future__ import annotations

from typing import Optional


class CardGenerationError(Exception):
    """Base class. ``step`` names the pipeline stage that failed."""

    step = "generate"

    def __init__(self, message: str, *, step: Optional[str] = None):
        super().__init__(message)
        if step:
            self.step = step

    def __str__(self) -> str:
        return f"[{self.step}] {super().__str__()}"


class NotFoundError(CardGenerationError):
    step = "fetch"


class RecordNotFound(NotFoundError):
    step = "fetch_record"


class TemplateNotFound(NotFoundError):
    step = "fetch_template"


class AssetLoadFailure(CardGenerationError):
    """A single asset could not be loaded. Recoverable inside the renderer."""

    step = "load_asset"

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        shown = source if len(source) <= 80 else source[:77] + "..."
        super().__init__(f"could not load '{shown}' {reason}".rstrip())


class UploadFailure(CardGenerationError):
    step = "upload"


class UnsupportedUploadType(UploadFailure):
    pass


class PersistFailure(CardGenerationError):
    step = "persist"


class QRPayloadError(ValueError):
    """Raised when a QR payload has no non-empty field."""
