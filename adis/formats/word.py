"""Word (.docx) uploads are rendered to PDF before processing.

Only paragraph and table text is carried over; layout fidelity is not a
goal. After conversion the PDF handler takes over ("Word-derived PDF").
"""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from pathlib import Path

import fitz  # PyMuPDF
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError

from adis.errors import FormatError

logger = logging.getLogger(__name__)

WORD_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_PAGE_W, _PAGE_H = 595, 842
_MARGIN = 60
_LINE_HEIGHT = 15
_FONT_SIZE = 11


def is_word(mime_type: str | None, filename: str | None) -> bool:
    if (mime_type or "").lower() == WORD_MEDIA_TYPE:
        return True
    return bool(filename) and Path(filename).suffix.lower() == ".docx"


def extract_text(data: bytes) -> list[str]:
    """Paragraph lines followed by table rows (cells joined with `` | ``)."""
    try:
        doc = DocxDocument(BytesIO(data))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise FormatError(f"Unreadable Word document: {exc}") from exc

    lines = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            lines.append(" | ".join(cell.text.strip() for cell in row.cells))
    return lines


def render_word_as_pdf(data: bytes) -> bytes:
    """Lay the document text out on A4 pages and return PDF bytes."""
    lines = extract_text(data)
    max_width = _PAGE_W - 2 * _MARGIN

    pdf = fitz.open()
    try:
        page = pdf.new_page(width=_PAGE_W, height=_PAGE_H)
        y = _MARGIN
        for line in _wrap(lines, max_width):
            if y > _PAGE_H - _MARGIN - 40:
                page = pdf.new_page(width=_PAGE_W, height=_PAGE_H)
                y = _MARGIN
            if line:
                page.insert_text(fitz.Point(_MARGIN, y), line, fontsize=_FONT_SIZE, fontname="helv")
            y += _LINE_HEIGHT
        logger.debug("Rendered Word document to %d PDF page(s)", pdf.page_count)
        return pdf.tobytes(garbage=3, deflate=True)
    finally:
        pdf.close()


def _wrap(lines: list[str], max_width: float) -> list[str]:
    wrapped: list[str] = []
    for line in lines:
        words = line.split()
        if not words:
            wrapped.append("")
            continue
        current = words[0]
        for word in words[1:]:
            trial = f"{current} {word}"
            if fitz.get_text_length(trial, fontname="helv", fontsize=_FONT_SIZE) <= max_width:
                current = trial
            else:
                wrapped.append(current)
                current = word
        wrapped.append(current)
    return wrapped
