"""Tamper classification for uploads that resolved to a document but matched no variant."""

from __future__ import annotations

import logging

from adis.errors import FormatError
from adis.formats.pdf import page_count
from adis.lineage.files import FileStorage
from adis.lineage.models import LogicalDocument, Variant
from adis.verification.models import TamperFinding, TamperPolicy, TamperType

logger = logging.getLogger(__name__)

PRIORITY = (Variant.WATERMARKED, Variant.PROCESSED, Variant.ORIGINAL)


def select_expected(doc: LogicalDocument, files: FileStorage) -> tuple[Variant | None, bytes | None]:
    """Highest-priority variant that has both a hash and a readable file.

    Falls back to the highest-priority variant with a hash (and no bytes)
    when no file is readable.
    """
    fallback: Variant | None = None
    for variant in PRIORITY:
        if not doc.variant_hash(variant):
            continue
        if fallback is None:
            fallback = variant
        data = files.read(doc.variant_path(variant))
        if data is not None:
            return variant, data
    return fallback, None


def detect_tampering(
    uploaded: bytes,
    doc: LogicalDocument,
    files: FileStorage,
    *,
    is_pdf: bool,
    is_watermarked: bool,
    policy: TamperPolicy | None = None,
) -> TamperFinding:
    """Classify the difference between *uploaded* and the expected variant of *doc*."""
    policy = policy or TamperPolicy()
    expected_variant, expected_data = select_expected(doc, files)

    expected_size = len(expected_data) if expected_data is not None else 0
    uploaded_size = len(uploaded)
    size_difference = abs(uploaded_size - expected_size)
    size_ratio = size_difference / expected_size if expected_size else 1.0

    def finding(tamper_type: TamperType, confidence: int, message: str) -> TamperFinding:
        return TamperFinding(
            tamper_type=tamper_type,
            confidence=confidence,
            message=message,
            expected_variant=expected_variant.label if expected_variant else None,
            expected_hash=doc.variant_hash(expected_variant) if expected_variant else None,
            expected_size=expected_size,
            uploaded_size=uploaded_size,
            size_difference=size_difference,
            size_ratio=size_ratio,
        )

    if not is_pdf:
        if size_difference == 0:
            return finding(TamperType.CONTENT_REPLACEMENT, 100,
                           "File content was replaced while keeping the same size")
        if size_ratio < policy.binary_minor_ratio:
            return finding(TamperType.MINOR_MODIFICATION, policy.binary_minor_confidence,
                           "File shows minor modifications")
        return finding(TamperType.MAJOR_MODIFICATION, 100, "File was significantly modified")

    try:
        uploaded_pages = page_count(uploaded)
    except FormatError as exc:
        logger.info("Uploaded PDF could not be parsed: %s", exc)
        return finding(TamperType.STRUCTURE_CORRUPTION, 100,
                       "PDF structure is corrupted or unreadable")

    if expected_data is not None:
        try:
            expected_pages = page_count(expected_data)
        except FormatError as exc:
            logger.warning("Stored %s variant of %s is not a readable PDF: %s",
                           expected_variant.value if expected_variant else "?", doc.document_hash, exc)
            expected_pages = None
        if expected_pages is not None and expected_pages != uploaded_pages:
            return finding(TamperType.PAGE_MODIFICATION, 100,
                           f"Page count changed from {expected_pages} to {uploaded_pages}")

    if is_watermarked and expected_variant is not Variant.WATERMARKED:
        return finding(TamperType.WATERMARK_MISMATCH, policy.watermark_mismatch_confidence,
                       "Document claims a verification watermark that does not match the issued copy")

    if not is_watermarked and expected_variant is Variant.WATERMARKED:
        return finding(TamperType.WATERMARK_REMOVAL, policy.watermark_removal_confidence,
                       "Verification watermark was removed from the document")

    if size_ratio < policy.pdf_minor_ratio:
        return finding(TamperType.MINOR_MODIFICATION, policy.pdf_minor_confidence,
                       "Document shows minor modifications")

    return finding(TamperType.CONTENT_MODIFICATION, policy.content_modification_confidence,
                   f"Document content was modified ({round(size_ratio * 100)}% size difference)")
