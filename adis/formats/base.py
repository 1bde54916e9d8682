"""Common types for format handlers.

Every container format the service accepts carries the document hash in
two places: a visible human-facing mark and a machine-readable metadata
field. Only the metadata is used for extraction. The token grammar is
shared across formats::

    subject:  <hash>                              (processed)
              Blockchain Verified: <hash>         (watermarked)
    keywords: verification_hash:<hash>[, blockchain_verified:true, ...]
"""

from __future__ import annotations

import abc
import re
from dataclasses import asdict, dataclass
from typing import Any

PRODUCER = "Document Verification System"
WATERMARK_TITLE = "ORIGINAL - Blockchain Verified"

_HASH_IN_TEXT_RE = re.compile(r"0x[a-fA-F0-9]{64}")
_KEYWORD_HASH_RE = re.compile(r"verification_hash:(0x[a-fA-F0-9]{64})")


@dataclass(frozen=True)
class ExtractedMetadata:
    """Result of reading verification metadata back out of a file."""

    hash: str | None = None
    is_watermarked: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WatermarkStamp:
    """Ledger facts rendered onto the watermarked variant."""

    document_hash: str
    tx_id: str
    block_height: int
    verified_at: str
    label: str = "ORIGINAL"

    @property
    def short_tx(self) -> str:
        if len(self.tx_id) <= 24:
            return self.tx_id
        return f"{self.tx_id[:16]}...{self.tx_id[-8:]}"


def build_subject(document_hash: str, watermarked: bool = False) -> str:
    if watermarked:
        return f"Blockchain Verified: {document_hash}"
    return document_hash


def build_keywords(document_hash: str, stamp: WatermarkStamp | None = None) -> str:
    tokens = [f"verification_hash:{document_hash}"]
    if stamp is not None:
        tokens.extend([
            "blockchain_verified:true",
            "watermarked:true",
            "original_copy:stamped",
            f"tx_hash:{stamp.tx_id}",
            f"block_number:{stamp.block_height}",
        ])
    return ", ".join(tokens)


def parse_verification_tokens(subject: str | None, keywords: str | None) -> ExtractedMetadata:
    """Recover the embedded hash and watermark flag from metadata strings.

    A ``verification_hash:`` keyword takes precedence over the subject.
    """
    found: str | None = None
    watermarked = False

    subject = (subject or "").strip()
    if subject.startswith("0x"):
        match = _HASH_IN_TEXT_RE.match(subject)
        if match:
            found = match.group(0)
    elif "Verified:" in subject:
        watermarked = True
        match = _HASH_IN_TEXT_RE.search(subject)
        if match:
            found = match.group(0)

    keywords = keywords or ""
    match = _KEYWORD_HASH_RE.search(keywords)
    if match:
        found = match.group(1)
    if "blockchain_verified:true" in keywords:
        watermarked = True

    return ExtractedMetadata(hash=found.lower() if found else None, is_watermarked=watermarked)


class FormatHandler(abc.ABC):
    """Embed, extract and watermark for one container format."""

    name: str = "abstract"
    extension: str = ""
    media_type: str = "application/octet-stream"

    @abc.abstractmethod
    def embed(self, data: bytes, document_hash: str) -> bytes:
        """Return a copy of *data* carrying *document_hash* in its metadata."""

    @abc.abstractmethod
    def extract(self, data: bytes) -> ExtractedMetadata:
        """Read the embedded hash and watermark flag; never raises."""

    @abc.abstractmethod
    def render_watermark(self, data: bytes, stamp: WatermarkStamp) -> bytes:
        """Overlay the visual watermark and embed watermark metadata."""

    def stamp_processed(self, data: bytes, document_hash: str, qr_png: bytes, verification_url: str) -> bytes:
        """Place the verification QR on the processed variant.

        Formats without a visual surface only embed the hash.
        """
        return self.embed(data, document_hash)
