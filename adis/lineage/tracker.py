"""Lineage tracking across the original, processed and watermarked variants."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from adis.integrity.hashing import keccak256
from adis.lineage.files import FileStorage
from adis.lineage.models import LogicalDocument, Variant
from adis.lineage.store import DocumentStore, filename_base

logger = logging.getLogger(__name__)

# Shorter base names match too many stored names to identify a document.
MIN_FILENAME_FRAGMENT = 3


@dataclass(frozen=True)
class Resolution:
    """A located document and how it was found."""

    document: LogicalDocument
    method: str  # document_hash_extraction | content_hash_match | filename_match


class LineageTracker:
    """Records variant hashes and resolves uploads back to a logical document."""

    def __init__(self, store: DocumentStore, files: FileStorage) -> None:
        self.store = store
        self.files = files

    # -- Recording ------------------------------------------------------------

    def _record(self, doc: LogicalDocument, variant: Variant, path: str | Path, content_hash: str) -> LogicalDocument:
        path = str(path)
        content_hash = content_hash.lower()
        if doc.variant_path(variant) == path and doc.variant_hash(variant) == content_hash:
            return doc
        updated = self.store.update(
            doc.document_hash,
            **{variant.path_field: path, variant.hash_field: content_hash},
        )
        logger.info("Recorded %s variant for %s", variant.value, doc.document_hash)
        return updated

    def record_original(self, doc: LogicalDocument, path: str | Path, content_hash: str) -> LogicalDocument:
        return self._record(doc, Variant.ORIGINAL, path, content_hash)

    def record_processed(self, doc: LogicalDocument, path: str | Path, content_hash: str) -> LogicalDocument:
        return self._record(doc, Variant.PROCESSED, path, content_hash)

    def record_watermarked(self, doc: LogicalDocument, path: str | Path, content_hash: str) -> LogicalDocument:
        return self._record(doc, Variant.WATERMARKED, path, content_hash)

    # -- Backfill -------------------------------------------------------------

    def backfill_missing_hashes(self, doc: LogicalDocument) -> LogicalDocument:
        """Compute absent variant hashes from their stored files.

        Unreadable files are logged and left absent; the remaining variants
        are still filled in.
        """
        changes: dict[str, str] = {}
        failed: list[str] = []
        for variant in (Variant.ORIGINAL, Variant.PROCESSED, Variant.WATERMARKED):
            path = doc.variant_path(variant)
            if doc.variant_hash(variant) or not path:
                continue
            data = self.files.read(path)
            if data is None:
                failed.append(variant.value)
                continue
            changes[variant.hash_field] = keccak256(data)

        if failed:
            logger.warning(
                "Partial hash backfill for %s: unreadable %s file(s)",
                doc.document_hash, ", ".join(failed),
            )
        if not changes:
            return doc
        logger.info("Backfilled %s for %s", ", ".join(changes), doc.document_hash)
        return self.store.update(doc.document_hash, **changes)

    # -- Lookup ---------------------------------------------------------------

    def find_by_any_hash(self, candidate: str | None) -> LogicalDocument | None:
        if not candidate:
            return None
        return self.store.find_by_any_hash(candidate)

    def find_by_filename(self, filename: str | None) -> LogicalDocument | None:
        """Fuzzy fallback: most recent document whose stored names contain the upload's base name."""
        if not filename:
            return None
        base = filename_base(os.path.basename(filename))
        if len(base) < MIN_FILENAME_FRAGMENT:
            return None
        matches = self.store.search_filenames(base)
        return matches[0] if matches else None

    def resolve(self, embedded_hash: str | None, uploaded_hash: str,
                filename: str | None = None) -> Resolution | None:
        """Locate the logical document for an upload.

        Order: embedded hash, then the upload's own hash against every
        variant, then the file-name heuristic.
        """
        doc = self.find_by_any_hash(embedded_hash)
        if doc is not None:
            return Resolution(doc, "document_hash_extraction")

        doc = self.find_by_any_hash(uploaded_hash)
        if doc is not None:
            return Resolution(doc, "content_hash_match")

        doc = self.find_by_filename(filename)
        if doc is not None:
            logger.info("Resolved upload %r by file name to %s", filename, doc.document_hash)
            return Resolution(doc, "filename_match")
        return None
