"""Issuance: turn an upload plus structured fields into a tracked document.

``issue`` stores the original, renders the processed variant (QR and
embedded hash) and records both. ``finalize`` registers the canonical
hash on the ledger and composes the watermarked variant. A document whose
watermark could not be rendered stays ledger-verified; the gap is
reported in ``FinalizeResult.watermarked``.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from adis.errors import DocumentNotFoundError, RegistrationFailed, WatermarkError
from adis.formats import ImageHandler, PdfHandler, select_handler
from adis.formats.qr import render_qr_png, verification_url
from adis.formats.word import is_word, render_word_as_pdf
from adis.integrity.canonical import DocumentData, normalize_date
from adis.integrity.canonical import document_hash as canonical_hash
from adis.integrity.hashing import keccak256, normalize_hash
from adis.issuance.watermark import WatermarkComposer
from adis.ledger.gateway import LedgerGateway, RegistrationResult
from adis.lineage.models import LogicalDocument, Variant
from adis.lineage.tracker import LineageTracker

logger = logging.getLogger(__name__)

DOCUMENT_TYPE_NAMES = {
    "COR": "Certificate of Registration",
    "COG": "Certificate of Grades",
    "TOR": "Transcript of Records",
    "DIPLOMA": "Diploma",
    "CERTIFICATE": "Certificate",
}


def document_type_name(code: str) -> str:
    return DOCUMENT_TYPE_NAMES.get((code or "").upper(), code or "Document")


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of ledger registration plus watermarking."""

    document: LogicalDocument
    registration: RegistrationResult
    watermarked: bool
    watermark_error: str | None = None
    already_finalized: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_hash": self.document.document_hash,
            "verified": self.document.verified,
            "tx_id": self.document.ledger_tx_id,
            "block_height": self.document.ledger_block_height,
            "already_registered": self.registration.already_registered,
            "already_finalized": self.already_finalized,
            "watermarked": self.watermarked,
            "watermarked_file_path": self.document.watermarked_file_path,
            "watermark_error": self.watermark_error,
        }


class IssuanceService:
    """Orchestrates issuance and finalisation of academic documents."""

    def __init__(self, tracker: LineageTracker, ledger: LedgerGateway,
                 composer: WatermarkComposer, base_url: str, institution: str = "") -> None:
        self.tracker = tracker
        self.ledger = ledger
        self.composer = composer
        self.base_url = base_url
        self.institution = institution

    @property
    def store(self):
        return self.tracker.store

    @property
    def files(self):
        return self.tracker.files

    # -- Issue ----------------------------------------------------------------

    def issue(self, fields: DocumentData | Mapping[str, Any], upload: bytes, filename: str,
              mime_type: str | None = None, program: str = "") -> LogicalDocument:
        """Create (or return) the logical document for *fields* and its processed file.

        Raises:
            FormatError: If the upload cannot be parsed as its declared format.
        """
        data = fields if isinstance(fields, DocumentData) else DocumentData.from_mapping(fields)
        if not data.institution and self.institution:
            data = dataclasses.replace(data, institution=self.institution)

        doc_hash = canonical_hash(data)
        existing = self.store.get(doc_hash)
        if existing is not None and self.files.exists(existing.processed_file_path):
            logger.info("Document %s already issued; returning existing record", doc_hash)
            return existing

        url = verification_url(self.base_url, doc_hash)
        qr_png = render_qr_png(url)
        processed, processed_ext = self._render_processed(data, upload, filename, mime_type, doc_hash, qr_png, url)

        original_path = self.files.write(
            self.files.path_for(Variant.ORIGINAL, doc_hash, Path(filename).suffix), upload
        )
        processed_path = self.files.write(
            self.files.path_for(Variant.PROCESSED, doc_hash, processed_ext), processed
        )

        doc = LogicalDocument(
            document_hash=doc_hash,
            student_id=data.student_id,
            student_name=data.student_name,
            program=program,
            document_type=data.document_type,
            institution=data.institution,
            date_issued=normalize_date(data.date_issued),
            original_file_name=Path(filename).name,
        )
        if not self.store.insert(doc):
            doc = self.store.get(doc_hash) or doc

        doc = self.tracker.record_original(doc, original_path, keccak256(upload))
        doc = self.tracker.record_processed(doc, processed_path, keccak256(processed))
        logger.info("Issued %s (%s) for student %s", doc_hash, data.document_type, data.student_id)
        return doc

    def _render_processed(self, data: DocumentData, upload: bytes, filename: str,
                          mime_type: str | None, doc_hash: str, qr_png: bytes,
                          url: str) -> tuple[bytes, str]:
        pdf = PdfHandler()
        if is_word(mime_type, filename):
            return pdf.stamp_processed(render_word_as_pdf(upload), doc_hash, qr_png, url), ".pdf"

        handler = select_handler(mime_type, filename)
        if isinstance(handler, PdfHandler):
            return handler.stamp_processed(upload, doc_hash, qr_png, url), ".pdf"
        if isinstance(handler, ImageHandler):
            return handler.stamp_processed(upload, doc_hash, qr_png, url), ".png"

        # anything else gets a verification cover page
        cover_fields = {
            "Document": document_type_name(data.document_type),
            "Student Name": data.student_name,
            "Student ID": data.student_id,
            "Institution": data.institution,
            "Date Issued": normalize_date(data.date_issued)[:10],
            "Original File": Path(filename).name,
        }
        return pdf.render_cover_page(cover_fields, doc_hash, qr_png, url), ".pdf"

    # -- Finalize -------------------------------------------------------------

    def finalize(self, document_hash: str) -> FinalizeResult:
        """Register on the ledger, then compose the watermarked variant.

        Raises:
            DocumentNotFoundError: If the document was never issued.
            LedgerUnavailable: If the ledger cannot be reached.
            RegistrationFailed: If the ledger rejected the registration.
        """
        key = normalize_hash(document_hash)
        doc = self.store.get(key)
        if doc is None:
            raise DocumentNotFoundError(key)

        if doc.verified and self.files.exists(doc.watermarked_file_path):
            return FinalizeResult(
                document=doc,
                registration=RegistrationResult(
                    success=True, tx_id=doc.ledger_tx_id,
                    block_height=doc.ledger_block_height, already_registered=True,
                ),
                watermarked=True,
                already_finalized=True,
            )

        registration = self.ledger.ensure_registered(key)
        if not registration.success:
            raise RegistrationFailed(registration.error or f"Registration of {key} failed")

        changes: dict[str, Any] = {"verified": True}
        if registration.tx_id:
            changes["ledger_tx_id"] = registration.tx_id
        if registration.block_height is not None:
            changes["ledger_block_height"] = registration.block_height
        doc = self.store.update(key, **changes)

        try:
            path = self.composer.compose_watermarked(
                doc,
                RegistrationResult(success=True, tx_id=doc.ledger_tx_id,
                                   block_height=doc.ledger_block_height),
            )
            rendered = self.files.read(path)
            if rendered is None:
                raise WatermarkError(f"Watermarked file vanished: {path}")
        except WatermarkError as exc:
            logger.error("Document %s is ledger-verified but not watermarked: %s", key, exc)
            return FinalizeResult(document=doc, registration=registration,
                                  watermarked=False, watermark_error=str(exc))

        doc = self.tracker.record_watermarked(doc, path, keccak256(rendered))
        logger.info("Finalized %s in block %s", key, doc.ledger_block_height)
        return FinalizeResult(document=doc, registration=registration, watermarked=True)
