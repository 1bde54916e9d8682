"""Format handlers and handler selection."""

from __future__ import annotations

from pathlib import Path

from adis.formats.base import ExtractedMetadata, FormatHandler, WatermarkStamp
from adis.formats.image import ImageHandler
from adis.formats.passthrough import PassthroughHandler
from adis.formats.pdf import PdfHandler

IMAGE_MEDIA_TYPES = {"image/png", "image/jpeg", "image/jpg"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg"}


def select_handler(mime_type: str | None = None, filename: str | None = None) -> FormatHandler:
    """Pick a handler by MIME type, falling back to the file extension."""
    mime = (mime_type or "").lower()
    if mime == "application/pdf":
        return PdfHandler()
    if mime in IMAGE_MEDIA_TYPES:
        return ImageHandler()

    ext = Path(filename).suffix.lower() if filename else ""
    if ext == ".pdf":
        return PdfHandler()
    if ext in IMAGE_EXTENSIONS:
        return ImageHandler()
    return PassthroughHandler()


__all__ = [
    "ExtractedMetadata",
    "FormatHandler",
    "WatermarkStamp",
    "ImageHandler",
    "PassthroughHandler",
    "PdfHandler",
    "select_handler",
]
