"""Tests for issuance, finalisation, watermark composition and drafts."""

from pathlib import Path
from unittest.mock import patch

import fitz  # PyMuPDF
import pytest

from adis.errors import (
    DocumentNotFoundError,
    DraftNotFoundError,
    InvalidTransitionError,
    LedgerUnavailable,
    RegistrationFailed,
    WatermarkError,
)
from adis.formats import ImageHandler, PdfHandler
from adis.formats.pdf import page_count
from adis.integrity import document_hash, keccak256
from adis.issuance import (
    DraftStatus,
    InMemoryDraftStore,
    WatermarkComposer,
    document_type_name,
    register_draft,
)
from adis.ledger import InMemoryLedger, RegistrationResult
from adis.lineage import LogicalDocument, Variant
from adis.services import build_services
from tests.conftest import make_jpeg

PDF = "application/pdf"


# ===========================================================================
# Issue
# ===========================================================================


class TestIssue:
    def test_issue_pdf(self, services, document_fields, sample_pdf):
        doc = services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)

        assert doc.document_hash == document_hash(document_fields)
        assert doc.content_hash == keccak256(sample_pdf)
        assert doc.verified is False
        assert doc.date_issued == "2024-06-01T00:00:00.000Z"
        assert doc.original_file_name == "transcript.pdf"

        original = Path(doc.original_file_path)
        processed = Path(doc.processed_file_path)
        assert original == services.files.root / "originals" / f"{doc.document_hash}.pdf"
        assert processed == services.files.root / "processed" / f"{doc.document_hash}.pdf"
        assert original.read_bytes() == sample_pdf
        assert doc.processed_content_hash == keccak256(processed.read_bytes())

        extracted = PdfHandler().extract(processed.read_bytes())
        assert extracted.hash == doc.document_hash
        assert extracted.is_watermarked is False
        assert page_count(processed.read_bytes()) == 2

    def test_processed_qr_points_at_verification_url(self, services, document_fields, sample_pdf):
        doc = services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)
        with fitz.open(doc.processed_file_path) as pdf:
            uris = [link.get("uri") for link in pdf[0].get_links()]
        assert f"https://verify.example.edu/verify/{doc.document_hash}" in uris

    def test_issue_image_outputs_png(self, services, document_fields):
        doc = services.issuance.issue(document_fields, make_jpeg(), "diploma.jpg", mime_type="image/jpeg")
        assert doc.original_file_path.endswith(".jpg")
        assert doc.processed_file_path.endswith(".png")
        assert ImageHandler().extract(Path(doc.processed_file_path).read_bytes()).hash == doc.document_hash

    def test_issue_word_renders_pdf(self, services, document_fields, sample_docx):
        doc = services.issuance.issue(document_fields, sample_docx, "grades.docx")
        assert doc.original_file_path.endswith(".docx")
        processed = Path(doc.processed_file_path).read_bytes()
        assert doc.processed_file_path.endswith(".pdf")
        assert PdfHandler().extract(processed).hash == doc.document_hash

    def test_issue_other_format_gets_cover_page(self, services, document_fields):
        doc = services.issuance.issue(document_fields, b"plain text record", "record.txt")
        processed = Path(doc.processed_file_path).read_bytes()
        assert page_count(processed) == 1
        with fitz.open(stream=processed, filetype="pdf") as pdf:
            text = pdf[0].get_text()
        assert "Transcript of Records" in text
        assert "record.txt" in text

    def test_issue_is_idempotent(self, services, document_fields, sample_pdf):
        first = services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)
        second = services.issuance.issue(document_fields, sample_pdf, "copy.pdf", mime_type=PDF)
        assert second.document_hash == first.document_hash
        assert second.created_at == first.created_at
        assert second.original_file_name == "transcript.pdf"
        assert services.store.count() == 1

    def test_default_institution(self, services, document_fields, sample_pdf):
        del document_fields["institution"]
        doc = services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)
        assert doc.institution == "University of Example"
        assert doc.document_hash == document_hash(dict(document_fields, institution="University of Example"))

    def test_invalid_date_rejected(self, services, document_fields, sample_pdf):
        document_fields["date_issued"] = "sometime"
        with pytest.raises(ValueError):
            services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)
        assert services.store.count() == 0

    def test_line_break_in_field_rejected(self, services, document_fields, sample_pdf):
        document_fields["student_name"] = "Maria\nSTUDENT_NAME:Santos"
        with pytest.raises(ValueError, match="Line breaks"):
            services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)
        assert services.store.count() == 0


class TestDocumentTypeName:
    def test_known_and_unknown(self):
        assert document_type_name("tor") == "Transcript of Records"
        assert document_type_name("MEMO") == "MEMO"
        assert document_type_name("") == "Document"


# ===========================================================================
# Finalize
# ===========================================================================


@pytest.fixture
def issued(services, document_fields, sample_pdf):
    return services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)


class TestFinalize:
    def test_finalize(self, services, issued, ledger):
        result = services.issuance.finalize(issued.document_hash)
        doc = result.document

        assert result.watermarked is True
        assert doc.verified is True
        assert doc.ledger_block_height == 1
        assert doc.ledger_tx_id == result.registration.tx_id
        assert ledger.lookup(doc.document_hash).exists

        watermarked = Path(doc.watermarked_file_path)
        assert watermarked.name == f"{doc.document_hash}_verified.pdf"
        assert doc.watermarked_content_hash == keccak256(watermarked.read_bytes())
        extracted = PdfHandler().extract(watermarked.read_bytes())
        assert extracted.hash == doc.document_hash
        assert extracted.is_watermarked is True

    def test_finalize_twice(self, services, issued):
        first = services.issuance.finalize(issued.document_hash)
        second = services.issuance.finalize(issued.document_hash.upper().replace("0X", "0x"))
        assert second.already_finalized is True
        assert second.document.ledger_block_height == first.document.ledger_block_height
        assert second.to_dict()["already_registered"] is True

    def test_finalize_after_external_registration(self, services, issued, ledger):
        prior = ledger.register(issued.document_hash)
        result = services.issuance.finalize(issued.document_hash)
        assert result.registration.already_registered is True
        assert result.document.ledger_block_height == prior.block_height
        assert result.watermarked is True

    def test_finalize_unknown(self, services):
        with pytest.raises(DocumentNotFoundError):
            services.issuance.finalize("0x" + "00" * 32)

    def test_finalize_ledger_unavailable(self, services, issued, ledger):
        ledger.set_available(False)
        with pytest.raises(LedgerUnavailable):
            services.issuance.finalize(issued.document_hash)
        assert services.store.get(issued.document_hash).verified is False

    def test_finalize_registration_rejected(self, settings, store, document_fields, sample_pdf):
        class RejectingLedger(InMemoryLedger):
            def register(self, document_hash):
                return RegistrationResult(success=False, error="out of gas")

        services = build_services(settings, store=store, ledger=RejectingLedger())
        doc = services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)
        with pytest.raises(RegistrationFailed, match="out of gas"):
            services.issuance.finalize(doc.document_hash)
        assert store.get(doc.document_hash).verified is False

    def test_watermark_failure_keeps_verified(self, services, issued):
        with patch.object(services.issuance.composer, "compose_watermarked",
                          side_effect=WatermarkError("renderer crashed")):
            result = services.issuance.finalize(issued.document_hash)

        assert result.watermarked is False
        assert result.watermark_error == "renderer crashed"
        doc = services.store.get(issued.document_hash)
        assert doc.verified is True
        assert doc.watermarked_file_path is None

        # a later finalize completes the watermark without re-registering
        retry = services.issuance.finalize(issued.document_hash)
        assert retry.watermarked is True
        assert retry.registration.already_registered is True


# ===========================================================================
# Watermark composer
# ===========================================================================


class TestWatermarkComposer:
    def _record(self):
        return RegistrationResult(success=True, tx_id="0x" + "99" * 32, block_height=12)

    def test_incomplete_ledger_record(self, files, issued):
        composer = WatermarkComposer(files)
        with pytest.raises(WatermarkError):
            composer.compose_watermarked(issued, RegistrationResult(success=True, tx_id=None, block_height=3))

    def test_missing_processed_file(self, files):
        composer = WatermarkComposer(files)
        doc = LogicalDocument(document_hash="0x" + "ab" * 32,
                              processed_file_path=str(files.root / "processed" / "missing.pdf"))
        with pytest.raises(WatermarkError):
            composer.compose_watermarked(doc, self._record())

    def test_unrenderable_processed_file(self, files):
        doc_hash = "0x" + "ab" * 32
        path = files.write(files.path_for(Variant.PROCESSED, doc_hash, ".pdf"), b"not a pdf")
        doc = LogicalDocument(document_hash=doc_hash, processed_file_path=str(path))
        with pytest.raises(WatermarkError):
            WatermarkComposer(files).compose_watermarked(doc, self._record())

    def test_passthrough_format_is_copied(self, files):
        doc_hash = "0x" + "ab" * 32
        path = files.write(files.path_for(Variant.PROCESSED, doc_hash, ".txt"), b"plain")
        doc = LogicalDocument(document_hash=doc_hash, processed_file_path=str(path))
        dest = WatermarkComposer(files).compose_watermarked(doc, self._record())
        assert dest.name == f"{doc_hash}_verified.txt"
        assert dest.read_bytes() == b"plain"

    def test_custom_label(self, services, issued):
        dest = WatermarkComposer(services.files, label="CERTIFIED").compose_watermarked(issued, self._record())
        with fitz.open(dest) as pdf:
            assert "CERTIFIED" in pdf[0].get_text()
            assert "Block #12" in pdf[0].get_text()


# ===========================================================================
# Drafts
# ===========================================================================


class TestDrafts:
    def test_lifecycle(self, document_fields, ledger):
        drafts = InMemoryDraftStore()
        draft = drafts.create(document_fields)
        assert draft.status is DraftStatus.DRAFT

        edited = drafts.edit(draft.draft_id, {"student_name": "Maria C. Santos"})
        assert edited.status is DraftStatus.EDITED
        assert edited.revision == 2

        finalized = drafts.finalize(draft.draft_id)
        assert finalized.status is DraftStatus.FINALIZED
        assert finalized.document_hash == document_hash(dict(document_fields, student_name="Maria C. Santos"))

        registered = register_draft(drafts, ledger, draft.draft_id)
        assert registered.status is DraftStatus.LEDGER_REGISTERED
        assert registered.block_height == 1
        assert ledger.lookup(finalized.document_hash).exists

    def test_draft_hash_matches_upload_pipeline(self, services, document_fields, sample_pdf):
        drafts = InMemoryDraftStore()
        draft = drafts.finalize(drafts.create(document_fields).draft_id)
        doc = services.issuance.issue(document_fields, sample_pdf, "transcript.pdf", mime_type=PDF)
        assert draft.document_hash == doc.document_hash

    def test_finalized_draft_is_frozen(self, document_fields):
        drafts = InMemoryDraftStore()
        draft = drafts.finalize(drafts.create(document_fields).draft_id)
        with pytest.raises(InvalidTransitionError):
            drafts.edit(draft.draft_id, {"student_name": "Changed"})

    def test_register_requires_finalized(self, document_fields, ledger):
        drafts = InMemoryDraftStore()
        draft = drafts.create(document_fields)
        with pytest.raises(InvalidTransitionError):
            register_draft(drafts, ledger, draft.draft_id)

    def test_register_with_ledger_down(self, document_fields, ledger):
        drafts = InMemoryDraftStore()
        draft = drafts.finalize(drafts.create(document_fields).draft_id)
        ledger.set_available(False)
        with pytest.raises(LedgerUnavailable):
            register_draft(drafts, ledger, draft.draft_id)
        assert drafts.get(draft.draft_id).status is DraftStatus.FINALIZED

    def test_unknown_draft(self):
        with pytest.raises(DraftNotFoundError):
            InMemoryDraftStore().get("missing")

    def test_list_by_status(self, document_fields):
        drafts = InMemoryDraftStore()
        a = drafts.create(document_fields)
        drafts.create(document_fields)
        drafts.finalize(a.draft_id)
        assert [d.draft_id for d in drafts.list_by_status(DraftStatus.FINALIZED)] == [a.draft_id]
        assert len(drafts.list_by_status(DraftStatus.DRAFT)) == 1
