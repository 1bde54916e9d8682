"""Verification engine: decide what an uploaded file is.

Given only the uploaded bytes, the engine locates the logical document,
re-queries the ledger, and either matches the upload to one of the
document's stored variants or classifies how it was altered. The ledger
is authoritative: without a confirmed ledger record no upload is ever
reported as authentic.
"""

from __future__ import annotations

import logging

from adis.errors import DocumentNotFoundError, LedgerUnavailable
from adis.formats import PdfHandler, select_handler
from adis.formats.qr import parse_payload
from adis.integrity.hashing import hashes_equal, keccak256, normalize_hash
from adis.ledger.gateway import LedgerGateway
from adis.lineage.models import LogicalDocument, Variant
from adis.lineage.tracker import LineageTracker
from adis.utils import timestamp_to_iso
from adis.verification.models import (
    ComparisonResult,
    HashLookupResult,
    TamperPolicy,
    VerificationResult,
    VerificationStatus,
)
from adis.verification.tamper import PRIORITY, detect_tampering

logger = logging.getLogger(__name__)


class VerificationEngine:
    """Matches uploads against lineage variants and the ledger."""

    def __init__(self, tracker: LineageTracker, ledger: LedgerGateway,
                 policy: TamperPolicy | None = None) -> None:
        self.tracker = tracker
        self.ledger = ledger
        self.policy = policy or TamperPolicy()

    # -- Upload verification --------------------------------------------------

    def verify(self, data: bytes, mime_type: str | None = None,
               filename: str | None = None) -> VerificationResult:
        uploaded_hash = keccak256(data)
        handler = select_handler(mime_type, filename)
        extracted = handler.extract(data)

        base = {
            "uploaded_hash": uploaded_hash,
            "embedded_hash": extracted.hash,
            "is_watermarked": extracted.is_watermarked,
        }

        resolution = self.tracker.resolve(extracted.hash, uploaded_hash, filename)
        if resolution is None:
            logger.info("Verification: no document for upload %s", uploaded_hash)
            return VerificationResult(
                status=VerificationStatus.NOT_FOUND,
                message="Document not found in the registry",
                **base,
            )

        doc = resolution.document
        base["resolution_method"] = resolution.method
        base["document"] = doc.metadata()

        try:
            record = self.ledger.lookup(doc.document_hash)
        except LedgerUnavailable as exc:
            logger.warning("Ledger unavailable while verifying %s: %s", doc.document_hash, exc)
            return VerificationResult(
                status=VerificationStatus.NOT_VERIFIED,
                message="Ledger unavailable; authenticity cannot be confirmed",
                ledger_available=False,
                **base,
            )

        if not record.exists:
            return VerificationResult(
                status=VerificationStatus.NOT_VERIFIED,
                message="Document found but not registered on the blockchain",
                **base,
            )

        base["ledger_timestamp"] = record.timestamp
        base["ledger_verified_at"] = timestamp_to_iso(record.timestamp)

        if not doc.verified:
            logger.info("Ledger confirms %s; updating stale verified flag", doc.document_hash)
            doc = self.tracker.store.update(doc.document_hash, verified=True)

        doc = self.tracker.backfill_missing_hashes(doc)

        for variant in PRIORITY:
            if variant is Variant.WATERMARKED and not doc.verified:
                continue
            if hashes_equal(uploaded_hash, doc.variant_hash(variant)):
                return VerificationResult(
                    status=VerificationStatus.AUTHENTIC,
                    message=f"Document is authentic ({variant.label.replace('_', ' ')} copy)",
                    confidence=100,
                    matched_variant=variant.label,
                    **base,
                )

        if not any(doc.variant_hash(v) for v in PRIORITY):
            return VerificationResult(
                status=VerificationStatus.INTEGRITY_CHECK_FAILED,
                message="No stored variant is available to compare against",
                **base,
            )

        try:
            finding = detect_tampering(
                data, doc, self.tracker.files,
                is_pdf=isinstance(handler, PdfHandler),
                is_watermarked=extracted.is_watermarked,
                policy=self.policy,
            )
        except OSError as exc:
            logger.error("Integrity check failed for %s: %s", doc.document_hash, exc)
            return VerificationResult(
                status=VerificationStatus.INTEGRITY_CHECK_FAILED,
                message="Unable to verify document integrity",
                **base,
            )

        logger.warning(
            "Tampering detected for %s: %s (confidence %d)",
            doc.document_hash, finding.tamper_type.value, finding.confidence,
        )
        return VerificationResult(
            status=VerificationStatus.TAMPERED,
            message=finding.message,
            confidence=finding.confidence,
            tamper=finding,
            **base,
        )

    # -- Hash and QR lookup ---------------------------------------------------

    def lookup_hash(self, document_hash: str) -> HashLookupResult:
        """Ledger first, then the store.

        Raises:
            InvalidHashError: If *document_hash* is malformed.
            DocumentNotFoundError: If neither the ledger nor the store knows it.
        """
        key = normalize_hash(document_hash)
        doc: LogicalDocument | None = self.tracker.find_by_any_hash(key)
        ledger_key = doc.document_hash if doc else key

        ledger_available = True
        exists = False
        timestamp = None
        try:
            record = self.ledger.lookup(ledger_key)
            exists, timestamp = record.exists, record.timestamp
        except LedgerUnavailable as exc:
            logger.warning("Ledger unavailable for hash lookup %s: %s", ledger_key, exc)
            ledger_available = False

        if exists:
            return HashLookupResult(
                document_hash=ledger_key,
                verified=True,
                source="blockchain",
                ledger_timestamp=timestamp,
                ledger_verified_at=timestamp_to_iso(timestamp),
                document=doc.metadata() if doc else None,
            )
        if doc is not None:
            return HashLookupResult(
                document_hash=doc.document_hash,
                verified=False,
                source="database_only",
                ledger_available=ledger_available,
                document=doc.metadata(),
                warning="Document found in database but not registered on the blockchain",
            )
        raise DocumentNotFoundError(key)

    def verify_qr(self, raw: str) -> HashLookupResult:
        """Look up the document referenced by scanned QR text.

        Raises:
            ValueError: If the payload carries no document hash.
            DocumentNotFoundError: If the hash is unknown.
        """
        payload = parse_payload(raw)
        result = self.lookup_hash(payload.document_hash)
        if not payload.preview:
            return result
        return HashLookupResult(
            **{**result.to_dict(), "preview": True,
               "warning": "Preview QR code: issued before ledger registration"},
        )

    # -- Comparison -----------------------------------------------------------

    def compare(self, first: bytes, second: bytes,
                first_name: str | None = None, second_name: str | None = None,
                first_mime: str | None = None, second_mime: str | None = None) -> ComparisonResult:
        """Compare two uploads by raw bytes and by the document each resolves to."""
        first_hash, second_hash = keccak256(first), keccak256(second)
        first_doc = self._resolve_hash(first, first_hash, first_name, first_mime)
        second_doc = self._resolve_hash(second, second_hash, second_name, second_mime)

        notes = []
        if first_doc is None:
            notes.append("First file does not resolve to a registered document")
        if second_doc is None:
            notes.append("Second file does not resolve to a registered document")

        return ComparisonResult(
            first_hash=first_hash,
            second_hash=second_hash,
            identical=first_hash == second_hash,
            same_document=first_doc is not None and hashes_equal(first_doc, second_doc),
            first_document_hash=first_doc,
            second_document_hash=second_doc,
            notes=notes,
        )

    def _resolve_hash(self, data: bytes, uploaded_hash: str,
                      filename: str | None, mime_type: str | None) -> str | None:
        extracted = select_handler(mime_type, filename).extract(data)
        resolution = self.tracker.resolve(extracted.hash, uploaded_hash)
        return resolution.document.document_hash if resolution else None
