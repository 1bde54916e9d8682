"""Shared test fixtures for the ADIS test suite."""

import os
from io import BytesIO

import pytest

# Ensure test environment variables are set before any config import
os.environ.setdefault("ADIS_API_KEY", "test-api-key")
os.environ.setdefault("ADIS_DEMO_MODE", "true")
os.environ.setdefault("ADIS_BASE_URL", "https://verify.example.edu")

import fitz  # PyMuPDF
from docx import Document as DocxDocument
from PIL import Image

from adis.config import ADISSettings
from adis.ledger.memory import InMemoryLedger
from adis.lineage import FileStorage, InMemoryDocumentStore, LineageTracker
from adis.services import build_services


def make_pdf(pages: int = 1, text: str = "Transcript of Records") -> bytes:
    """Build a small PDF with *pages* pages of text."""
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=595, height=842)
        page.insert_text(fitz.Point(72, 72), f"{text} - page {i + 1}", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(size=(320, 240), color=(30, 60, 200)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(size=(320, 240), color=(200, 60, 30)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def make_docx(paragraphs=("UNIVERSITY OF EXAMPLE", "Certificate of Grades", "Student: Maria Santos")) -> bytes:
    doc = DocxDocument()
    for text in paragraphs:
        doc.add_paragraph(text)
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "CS101"
    table.rows[0].cells[1].text = "1.25"
    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def document_fields():
    """Structured issuance fields for a transcript."""
    return {
        "document_type": "TOR",
        "student_id": "2020-00123",
        "student_name": "Maria Santos",
        "institution": "University of Example",
        "date_issued": "2024-06-01",
        "courses": [
            {"code": "CS101", "name": "Intro to Computing", "units": 3, "grade": "1.25"},
            {"code": "MATH201", "name": "Linear Algebra", "units": 3, "grade": "1.50"},
        ],
    }


@pytest.fixture
def sample_pdf():
    return make_pdf(pages=2)


@pytest.fixture
def sample_png():
    return make_png()


@pytest.fixture
def sample_docx():
    return make_docx()


@pytest.fixture
def files(tmp_path):
    return FileStorage(tmp_path / "uploads")


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def tracker(store, files):
    return LineageTracker(store, files)


@pytest.fixture
def settings(tmp_path):
    return ADISSettings(
        storage_root=tmp_path / "uploads",
        database_path="",
        base_url="https://verify.example.edu",
        institution_name="University of Example",
    )


@pytest.fixture
def services(settings, store, ledger):
    """Full service graph on temp storage, in-memory store and ledger."""
    return build_services(settings, store=store, ledger=ledger)
