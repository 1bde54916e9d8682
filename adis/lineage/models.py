"""Logical document record and its three stored variants."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from adis.utils import utc_now_iso


class Variant(str, enum.Enum):
    """One stored rendition of a logical document, in matching priority order."""

    WATERMARKED = "watermarked"
    PROCESSED = "processed"
    ORIGINAL = "original"

    @property
    def hash_field(self) -> str:
        return {
            Variant.ORIGINAL: "content_hash",
            Variant.PROCESSED: "processed_content_hash",
            Variant.WATERMARKED: "watermarked_content_hash",
        }[self]

    @property
    def path_field(self) -> str:
        return f"{self.value}_file_path"

    @property
    def bucket(self) -> str:
        return {
            Variant.ORIGINAL: "originals",
            Variant.PROCESSED: "processed",
            Variant.WATERMARKED: "watermarked",
        }[self]

    @property
    def label(self) -> str:
        """Public name used in verification results."""
        return "watermarked_verified" if self is Variant.WATERMARKED else self.value


HASH_FIELDS = ("document_hash", "content_hash", "processed_content_hash", "watermarked_content_hash")


@dataclass
class LogicalDocument:
    """A document identified by the hash of its canonical content.

    Variant hashes are filled lazily; ``None`` means "not computed yet".
    ``verified`` caches the last ledger confirmation.
    """

    document_hash: str
    student_id: str = ""
    student_name: str = ""
    program: str = ""
    document_type: str = ""
    institution: str = ""
    date_issued: str = ""
    original_file_name: str = ""
    content_hash: str | None = None
    processed_content_hash: str | None = None
    watermarked_content_hash: str | None = None
    original_file_path: str | None = None
    processed_file_path: str | None = None
    watermarked_file_path: str | None = None
    ledger_tx_id: str | None = None
    ledger_block_height: int | None = None
    verified: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    def variant_hash(self, variant: Variant) -> str | None:
        return getattr(self, variant.hash_field)

    def variant_path(self, variant: Variant) -> str | None:
        return getattr(self, variant.path_field)

    def metadata(self) -> dict[str, Any]:
        """Descriptive fields safe to return to verifiers."""
        return {
            "document_hash": self.document_hash,
            "student_name": self.student_name,
            "student_id": self.student_id,
            "program": self.program,
            "document_type": self.document_type,
            "institution": self.institution,
            "date_issued": self.date_issued,
            "created_at": self.created_at,
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogicalDocument":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
