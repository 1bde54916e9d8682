"""PDF embedding, extraction and watermark rendering with PyMuPDF."""

from __future__ import annotations

import logging
import math
from typing import Any

import fitz  # PyMuPDF

from adis.errors import FormatError
from adis.formats.base import (
    PRODUCER,
    WATERMARK_TITLE,
    ExtractedMetadata,
    FormatHandler,
    WatermarkStamp,
    build_keywords,
    build_subject,
    parse_verification_tokens,
)

logger = logging.getLogger(__name__)

_RED = (0.8, 0.1, 0.1)
_DARK = (0.15, 0.15, 0.15)
_GREY = (0.4, 0.4, 0.4)
_WHITE = (1, 1, 1)

_CIRCLE_TEXT = "DO NOT MODIFY • BLOCKCHAIN VERIFIED • "

QR_SIZE = 100
QR_MARGIN = 20


def open_pdf(data: bytes) -> fitz.Document:
    """Open PDF bytes, raising FormatError for anything unparseable."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise FormatError(f"Unreadable PDF: {exc}") from exc
    if doc.page_count == 0:
        doc.close()
        raise FormatError("PDF has no pages")
    return doc


def page_count(data: bytes) -> int:
    """Number of pages in a PDF.

    Raises:
        FormatError: If *data* cannot be parsed as a PDF.
    """
    with open_pdf(data) as doc:
        return doc.page_count


def _write_metadata(doc: fitz.Document, subject: str, keywords: str, title: str | None = None) -> None:
    meta: dict[str, Any] = {
        k: v for k, v in (doc.metadata or {}).items()
        if k not in ("format", "encryption") and v
    }
    meta.update({
        "subject": subject,
        "keywords": keywords,
        "producer": PRODUCER,
        "creator": PRODUCER,
    })
    if title:
        meta["title"] = title
    doc.set_metadata(meta)


def _centered_text(page: fitz.Page, y: float, text: str, fontsize: float,
                   fontname: str = "helv", color=_DARK, opacity: float = 1.0) -> None:
    width = fitz.get_text_length(text, fontname=fontname, fontsize=fontsize)
    x = (page.rect.width - width) / 2
    page.insert_text(fitz.Point(x, y), text, fontsize=fontsize, fontname=fontname,
                     color=color, fill_opacity=opacity)


class PdfHandler(FormatHandler):
    name = "pdf"
    extension = ".pdf"
    media_type = "application/pdf"

    def embed(self, data: bytes, document_hash: str) -> bytes:
        with open_pdf(data) as doc:
            _write_metadata(doc, build_subject(document_hash), build_keywords(document_hash))
            return doc.tobytes(garbage=3, deflate=True)

    def extract(self, data: bytes) -> ExtractedMetadata:
        try:
            with open_pdf(data) as doc:
                meta = doc.metadata or {}
        except FormatError as exc:
            logger.debug("PDF metadata extraction failed: %s", exc)
            return ExtractedMetadata()
        return parse_verification_tokens(meta.get("subject"), meta.get("keywords"))

    # -- Processed variant ----------------------------------------------------

    def stamp_processed(self, data: bytes, document_hash: str, qr_png: bytes, verification_url: str) -> bytes:
        """Put the QR code bottom-right on the first page and embed the hash."""
        with open_pdf(data) as doc:
            page = doc[0]
            width, height = page.rect.width, page.rect.height
            qr_rect = fitz.Rect(
                width - QR_MARGIN - QR_SIZE,
                height - QR_MARGIN - QR_SIZE - 12,
                width - QR_MARGIN,
                height - QR_MARGIN - 12,
            )
            page.draw_rect(qr_rect + (-4, -14, 4, 14), color=None, fill=_WHITE)
            page.insert_image(qr_rect, stream=qr_png)
            page.insert_text(fitz.Point(qr_rect.x0 + 18, qr_rect.y0 - 4), "Scan to Verify",
                             fontsize=8, fontname="hebo", color=_DARK)
            page.insert_text(fitz.Point(qr_rect.x0 - 10, qr_rect.y1 + 9),
                             f"Hash: {document_hash[:20]}...", fontsize=6, color=_GREY)
            page.insert_link({"kind": fitz.LINK_URI, "from": qr_rect, "uri": verification_url})

            _write_metadata(doc, build_subject(document_hash), build_keywords(document_hash))
            return doc.tobytes(garbage=3, deflate=True)

    # -- Watermarked variant --------------------------------------------------

    def render_watermark(self, data: bytes, stamp: WatermarkStamp) -> bytes:
        with open_pdf(data) as doc:
            for page in doc:
                self._stamp_page(page, stamp)
            _write_metadata(
                doc,
                build_subject(stamp.document_hash, watermarked=True),
                build_keywords(stamp.document_hash, stamp),
                title=WATERMARK_TITLE,
            )
            return doc.tobytes(garbage=3, deflate=True)

    def _stamp_page(self, page: fitz.Page, stamp: WatermarkStamp) -> None:
        cx, cy = page.rect.width / 2, page.rect.height / 2
        size = 48
        label_width = fitz.get_text_length(stamp.label, fontname="hebo", fontsize=size)

        page.insert_text(fitz.Point(cx - label_width / 2, cy + size / 3), stamp.label,
                         fontsize=size, fontname="hebo", color=_RED, fill_opacity=0.25)
        for dy in (-size * 0.6, size * 0.6):
            page.draw_line(
                fitz.Point(cx - label_width / 2 - 12, cy + dy),
                fitz.Point(cx + label_width / 2 + 12, cy + dy),
                color=_RED, width=2, stroke_opacity=0.25,
            )

        radius = label_width / 2 + 36
        for i, char in enumerate(_CIRCLE_TEXT):
            angle = 360.0 * i / len(_CIRCLE_TEXT)
            rad = math.radians(angle)
            point = fitz.Point(cx + radius * math.cos(rad), cy + radius * math.sin(rad))
            page.insert_text(point, char, fontsize=9, fontname="helv", color=_RED,
                             fill_opacity=0.35, morph=(point, fitz.Matrix(-(angle + 90))))

        page.insert_text(fitz.Point(cx - 40, cy + size + 8), stamp.verified_at[:10],
                         fontsize=9, color=_RED, fill_opacity=0.4)

        page.insert_text(fitz.Point(20, 16), f"Verified: {stamp.document_hash}",
                         fontsize=6, color=_GREY)
        page.insert_text(fitz.Point(20, page.rect.height - 8),
                         f"Transaction: {stamp.short_tx}  |  Block #{stamp.block_height}",
                         fontsize=7, color=_GREY)

    # -- Cover page -----------------------------------------------------------

    def render_cover_page(self, fields: dict[str, Any], document_hash: str,
                          qr_png: bytes, verification_url: str) -> bytes:
        """One-page verification certificate for uploads that cannot carry a QR."""
        doc = fitz.open()
        try:
            page = doc.new_page(width=595, height=842)
            _centered_text(page, 90, "DOCUMENT VERIFICATION CERTIFICATE", 18, fontname="hebo")
            _centered_text(page, 115, "Academic document registered for blockchain verification",
                           10, color=_GREY)

            y = 170
            for label, value in fields.items():
                page.insert_text(fitz.Point(70, y), f"{label}:", fontsize=11, fontname="hebo", color=_DARK)
                page.insert_text(fitz.Point(210, y), str(value), fontsize=11, color=_DARK)
                y += 22

            page.insert_text(fitz.Point(70, y + 20), "Document hash:", fontsize=11, fontname="hebo", color=_DARK)
            page.insert_text(fitz.Point(70, y + 38), document_hash, fontsize=8, fontname="cour", color=_DARK)

            qr_rect = fitz.Rect(222, y + 70, 372, y + 220)
            page.insert_image(qr_rect, stream=qr_png)
            page.insert_link({"kind": fitz.LINK_URI, "from": qr_rect, "uri": verification_url})
            _centered_text(page, qr_rect.y1 + 18, "Scan to Verify", 10, fontname="hebo")
            _centered_text(page, qr_rect.y1 + 34, verification_url, 7, color=_GREY)

            _write_metadata(doc, build_subject(document_hash), build_keywords(document_hash),
                            title="Document Verification Certificate")
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()
