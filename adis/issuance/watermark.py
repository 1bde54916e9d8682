"""Compose the watermarked variant of a ledger-verified document."""

from __future__ import annotations

import logging
from pathlib import Path

from adis.errors import FormatError, WatermarkError
from adis.formats import PassthroughHandler, WatermarkStamp, select_handler
from adis.ledger.gateway import RegistrationResult
from adis.lineage.files import FileStorage
from adis.lineage.models import LogicalDocument, Variant
from adis.utils import utc_now_iso

logger = logging.getLogger(__name__)


class WatermarkComposer:
    """Renders ``watermarked/<hash>_verified<ext>`` from the processed variant."""

    def __init__(self, files: FileStorage, label: str = "ORIGINAL") -> None:
        self.files = files
        self.label = label

    def compose_watermarked(self, doc: LogicalDocument, ledger_record: RegistrationResult,
                            verified_at: str | None = None) -> Path:
        """Write the watermarked file and return its path.

        Raises:
            WatermarkError: If the ledger record is incomplete, the processed
                file is unreadable, or rendering fails.
        """
        if not ledger_record.tx_id or ledger_record.block_height is None:
            raise WatermarkError(
                f"Ledger record for {doc.document_hash} lacks a transaction id or block height"
            )
        if not doc.processed_file_path:
            raise WatermarkError(f"No processed file recorded for {doc.document_hash}")

        source = Path(doc.processed_file_path)
        data = self.files.read(source)
        if data is None:
            raise WatermarkError(f"Processed file is not readable: {source}")

        dest = self.files.path_for(Variant.WATERMARKED, doc.document_hash, source.suffix)
        handler = select_handler(None, source.name)

        if isinstance(handler, PassthroughHandler):
            logger.info("No watermark renderer for %s; copying bytes", source.suffix or "unknown format")
            try:
                return self.files.copy(source, dest)
            except OSError as exc:
                raise WatermarkError(f"Could not copy {source}: {exc}") from exc

        stamp = WatermarkStamp(
            document_hash=doc.document_hash,
            tx_id=ledger_record.tx_id,
            block_height=ledger_record.block_height,
            verified_at=verified_at or utc_now_iso(),
            label=self.label,
        )
        try:
            rendered = handler.render_watermark(data, stamp)
            self.files.write(dest, rendered)
        except (FormatError, OSError) as exc:
            raise WatermarkError(f"Watermarking {doc.document_hash} failed: {exc}") from exc

        logger.info("Watermarked %s -> %s", doc.document_hash, dest)
        return dest
