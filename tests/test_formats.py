"""Tests for embedding, extraction and watermarking across file formats."""

import json

import fitz  # PyMuPDF
import pytest

from adis.errors import FormatError
from adis.formats import ImageHandler, PassthroughHandler, PdfHandler, WatermarkStamp, select_handler
from adis.formats.base import build_keywords, build_subject, parse_verification_tokens
from adis.formats.pdf import page_count
from adis.formats.qr import build_payload, parse_payload, render_qr_png, verification_url
from adis.formats.word import WORD_MEDIA_TYPE, extract_text, is_word, render_word_as_pdf
from tests.conftest import make_docx, make_jpeg, make_pdf, make_png

HASH = "0x" + "ab" * 32
TX = "0x" + "cd" * 32


@pytest.fixture
def stamp():
    return WatermarkStamp(
        document_hash=HASH,
        tx_id=TX,
        block_height=42,
        verified_at="2024-06-02T09:30:00.000Z",
    )


# ===========================================================================
# Token grammar
# ===========================================================================


class TestVerificationTokens:
    def test_processed_subject(self):
        result = parse_verification_tokens(build_subject(HASH), build_keywords(HASH))
        assert result.hash == HASH
        assert result.is_watermarked is False

    def test_watermarked_subject(self, stamp):
        result = parse_verification_tokens(build_subject(HASH, watermarked=True), build_keywords(HASH, stamp))
        assert result.hash == HASH
        assert result.is_watermarked is True

    def test_keywords_take_precedence(self):
        other = "0x" + "11" * 32
        result = parse_verification_tokens(other, f"verification_hash:{HASH}")
        assert result.hash == HASH

    def test_subject_only_watermark(self):
        result = parse_verification_tokens(f"Blockchain Verified: {HASH}", None)
        assert result == parse_verification_tokens(f"Blockchain Verified: {HASH}", "")
        assert result.is_watermarked is True

    def test_keywords_carry_ledger_facts(self, stamp):
        keywords = build_keywords(HASH, stamp)
        assert "blockchain_verified:true" in keywords
        assert f"tx_hash:{TX}" in keywords
        assert "block_number:42" in keywords

    def test_no_tokens(self):
        result = parse_verification_tokens("Transcript", "grades, semester")
        assert result.hash is None
        assert result.is_watermarked is False

    def test_short_tx(self, stamp):
        assert stamp.short_tx == f"{TX[:16]}...{TX[-8:]}"


# ===========================================================================
# PDF
# ===========================================================================


class TestPdfHandler:
    def test_embed_extract(self):
        handler = PdfHandler()
        embedded = handler.embed(make_pdf(), HASH)
        result = handler.extract(embedded)
        assert result.hash == HASH
        assert result.is_watermarked is False

    def test_uppercase_hash_extracted_lowercase(self):
        handler = PdfHandler()
        embedded = handler.embed(make_pdf(), HASH.upper().replace("0X", "0x"))
        assert handler.extract(embedded).hash == HASH

    def test_stamp_processed_keeps_pages(self, sample_pdf):
        handler = PdfHandler()
        url = verification_url("https://verify.example.edu", HASH)
        processed = handler.stamp_processed(sample_pdf, HASH, render_qr_png(url), url)
        assert page_count(processed) == 2
        assert handler.extract(processed).hash == HASH

        with fitz.open(stream=processed, filetype="pdf") as doc:
            links = doc[0].get_links()
            assert any(link.get("uri") == url for link in links)
            assert "Scan to Verify" in doc[0].get_text()

    def test_render_watermark(self, sample_pdf, stamp):
        handler = PdfHandler()
        watermarked = handler.render_watermark(handler.embed(sample_pdf, HASH), stamp)
        result = handler.extract(watermarked)
        assert result.hash == HASH
        assert result.is_watermarked is True
        assert page_count(watermarked) == 2

        with fitz.open(stream=watermarked, filetype="pdf") as doc:
            meta = doc.metadata
            assert meta["subject"] == f"Blockchain Verified: {HASH}"
            assert "block_number:42" in meta["keywords"]
            assert meta["producer"] == "Document Verification System"
            for page in doc:
                text = page.get_text()
                assert "ORIGINAL" in text
                assert "Block #42" in text

    def test_cover_page(self):
        handler = PdfHandler()
        url = verification_url("https://verify.example.edu", HASH)
        cover = handler.render_cover_page(
            {"Student Name": "Maria Santos", "Document": "Transcript of Records"},
            HASH, render_qr_png(url), url,
        )
        assert page_count(cover) == 1
        assert handler.extract(cover).hash == HASH
        with fitz.open(stream=cover, filetype="pdf") as doc:
            assert "Maria Santos" in doc[0].get_text()

    def test_extract_garbage_returns_nothing(self):
        result = PdfHandler().extract(b"this is not a pdf")
        assert result.hash is None
        assert result.is_watermarked is False

    def test_extract_without_metadata(self):
        assert PdfHandler().extract(make_pdf()).hash is None

    def test_page_count_garbage_raises(self):
        with pytest.raises(FormatError):
            page_count(b"")

    def test_embed_garbage_raises(self):
        with pytest.raises(FormatError):
            PdfHandler().embed(b"", HASH)


# ===========================================================================
# Images
# ===========================================================================


class TestImageHandler:
    def test_png_embed_extract(self, sample_png):
        handler = ImageHandler()
        result = handler.extract(handler.embed(sample_png, HASH))
        assert result.hash == HASH
        assert result.is_watermarked is False

    def test_jpeg_embed_extract(self):
        handler = ImageHandler()
        embedded = handler.embed(make_jpeg(), HASH)
        assert embedded[:2] == b"\xff\xd8"
        assert handler.extract(embedded).hash == HASH

    def test_stamp_processed_outputs_png(self):
        handler = ImageHandler()
        url = verification_url("https://verify.example.edu", HASH)
        processed = handler.stamp_processed(make_jpeg(), HASH, render_qr_png(url), url)
        assert processed[:8] == b"\x89PNG\r\n\x1a\n"
        assert handler.extract(processed).hash == HASH

    def test_stamp_processed_small_image(self):
        handler = ImageHandler()
        processed = handler.stamp_processed(make_png(size=(60, 60)), HASH, render_qr_png("x"), "x")
        assert handler.extract(processed).hash == HASH

    def test_render_watermark_png(self, sample_png, stamp):
        handler = ImageHandler()
        watermarked = handler.render_watermark(handler.embed(sample_png, HASH), stamp)
        result = handler.extract(watermarked)
        assert result.hash == HASH
        assert result.is_watermarked is True

    def test_render_watermark_keeps_jpeg(self, stamp):
        handler = ImageHandler()
        watermarked = handler.render_watermark(make_jpeg(), stamp)
        assert watermarked[:2] == b"\xff\xd8"
        assert handler.extract(watermarked).is_watermarked is True

    def test_extract_garbage_returns_nothing(self):
        assert ImageHandler().extract(b"\x89PNG not really").hash is None

    def test_oversized_image_is_unreadable(self, sample_png, stamp, monkeypatch):
        from PIL import Image
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        handler = ImageHandler()
        assert handler.extract(sample_png).hash is None
        with pytest.raises(FormatError):
            handler.render_watermark(sample_png, stamp)

    def test_render_watermark_garbage_raises(self, stamp):
        with pytest.raises(FormatError):
            ImageHandler().render_watermark(b"garbage", stamp)


class TestPassthroughHandler:
    def test_identity(self, stamp):
        handler = PassthroughHandler()
        data = b"plain text"
        assert handler.embed(data, HASH) == data
        assert handler.render_watermark(data, stamp) == data
        assert handler.extract(data).hash is None


class TestSelectHandler:
    @pytest.mark.parametrize("mime,filename,expected", [
        ("application/pdf", None, PdfHandler),
        ("image/png", None, ImageHandler),
        ("image/jpeg", "scan.bin", ImageHandler),
        (None, "transcript.PDF", PdfHandler),
        ("application/octet-stream", "photo.jpg", ImageHandler),
        (None, "notes.txt", PassthroughHandler),
        (None, None, PassthroughHandler),
    ])
    def test_selection(self, mime, filename, expected):
        assert isinstance(select_handler(mime, filename), expected)


# ===========================================================================
# QR payloads
# ===========================================================================


class TestQR:
    def test_verification_url(self):
        assert verification_url("https://verify.example.edu/", HASH) == f"https://verify.example.edu/verify/{HASH}"

    def test_render_png(self):
        assert render_qr_png("https://verify.example.edu").startswith(b"\x89PNG")

    def test_parse_url(self):
        payload = parse_payload(f"https://verify.example.edu/verify/{HASH}")
        assert payload.document_hash == HASH
        assert payload.url.endswith(HASH)
        assert payload.preview is False

    def test_parse_bare_hash(self):
        assert parse_payload(f"  {HASH.upper().replace('0X', '0x')} ").document_hash == HASH

    def test_parse_json_payload(self):
        raw = json.dumps(build_payload("https://verify.example.edu", HASH, preview=True))
        payload = parse_payload(raw)
        assert payload.document_hash == HASH
        assert payload.preview is True

    def test_parse_json_url_only(self):
        payload = parse_payload(json.dumps({"url": verification_url("https://x.edu", HASH)}))
        assert payload.document_hash == HASH

    @pytest.mark.parametrize("raw", ["", "hello", "{not json", '{"url": "https://x.edu"}'])
    def test_parse_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_payload(raw)


# ===========================================================================
# Word
# ===========================================================================


class TestWord:
    def test_is_word(self):
        assert is_word(WORD_MEDIA_TYPE, None)
        assert is_word(None, "Certificate.DOCX")
        assert not is_word("application/pdf", "transcript.pdf")

    def test_extract_text_includes_tables(self, sample_docx):
        lines = extract_text(sample_docx)
        assert "Certificate of Grades" in lines
        assert "CS101 | 1.25" in lines

    def test_render_as_pdf(self, sample_docx):
        pdf = render_word_as_pdf(sample_docx)
        assert page_count(pdf) == 1
        with fitz.open(stream=pdf, filetype="pdf") as doc:
            assert "Student: Maria Santos" in doc[0].get_text()

    def test_long_document_paginates(self):
        pdf = render_word_as_pdf(make_docx(paragraphs=[f"Line {i}" for i in range(120)]))
        assert page_count(pdf) > 1

    def test_unreadable_word_raises(self):
        with pytest.raises(FormatError):
            render_word_as_pdf(b"not a zip")
