"""Handler for formats without an embeddable metadata field."""

from __future__ import annotations

from adis.formats.base import ExtractedMetadata, FormatHandler, WatermarkStamp


class PassthroughHandler(FormatHandler):
    """Leaves bytes untouched; extraction always finds nothing."""

    name = "passthrough"

    def embed(self, data: bytes, document_hash: str) -> bytes:
        return data

    def extract(self, data: bytes) -> ExtractedMetadata:
        return ExtractedMetadata()

    def render_watermark(self, data: bytes, stamp: WatermarkStamp) -> bytes:
        return data
