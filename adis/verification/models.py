"""Data models for verification outcomes."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any

from adis.integrity.hashing import HASH_ALGORITHM


class VerificationStatus(str, enum.Enum):
    AUTHENTIC = "authentic"
    NOT_FOUND = "not_found"
    NOT_VERIFIED = "not_verified"
    TAMPERED = "tampered"
    INTEGRITY_CHECK_FAILED = "integrity_check_failed"


class TamperType(str, enum.Enum):
    PAGE_MODIFICATION = "PAGE_MODIFICATION"
    WATERMARK_MISMATCH = "WATERMARK_MISMATCH"
    WATERMARK_REMOVAL = "WATERMARK_REMOVAL"
    MINOR_MODIFICATION = "MINOR_MODIFICATION"
    CONTENT_MODIFICATION = "CONTENT_MODIFICATION"
    STRUCTURE_CORRUPTION = "STRUCTURE_CORRUPTION"
    CONTENT_REPLACEMENT = "CONTENT_REPLACEMENT"
    MAJOR_MODIFICATION = "MAJOR_MODIFICATION"


@dataclass(frozen=True)
class TamperPolicy:
    """Size-ratio thresholds and confidence scores for tamper classification.

    Ratios are ``|uploaded - expected| / expected`` byte sizes.
    """

    pdf_minor_ratio: float = 0.01
    binary_minor_ratio: float = 0.05
    pdf_minor_confidence: int = 70
    binary_minor_confidence: int = 85
    watermark_mismatch_confidence: int = 85
    watermark_removal_confidence: int = 95
    content_modification_confidence: int = 95

    @classmethod
    def from_settings(cls, cfg: Any) -> "TamperPolicy":
        return cls(
            pdf_minor_ratio=cfg.tamper_pdf_minor_ratio,
            binary_minor_ratio=cfg.tamper_binary_minor_ratio,
            pdf_minor_confidence=cfg.tamper_pdf_minor_confidence,
            binary_minor_confidence=cfg.tamper_binary_minor_confidence,
            watermark_mismatch_confidence=cfg.tamper_watermark_mismatch_confidence,
            watermark_removal_confidence=cfg.tamper_watermark_removal_confidence,
            content_modification_confidence=cfg.tamper_content_modification_confidence,
        )


@dataclass(frozen=True)
class TamperFinding:
    """Classification of how an upload differs from its expected variant."""

    tamper_type: TamperType
    confidence: int
    message: str
    expected_variant: str | None = None
    expected_hash: str | None = None
    expected_size: int = 0
    uploaded_size: int = 0
    size_difference: int = 0
    size_ratio: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["tamper_type"] = self.tamper_type.value
        return d


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one uploaded file."""

    status: VerificationStatus
    message: str
    uploaded_hash: str
    confidence: int = 0
    hash_algorithm: str = HASH_ALGORITHM
    embedded_hash: str | None = None
    is_watermarked: bool = False
    resolution_method: str | None = None
    matched_variant: str | None = None
    document: dict[str, Any] | None = None
    ledger_available: bool = True
    ledger_timestamp: int | None = None
    ledger_verified_at: str | None = None
    tamper: TamperFinding | None = None

    @property
    def authentic(self) -> bool:
        return self.status is VerificationStatus.AUTHENTIC

    @property
    def tampered(self) -> bool:
        return self.status is VerificationStatus.TAMPERED

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["authentic"] = self.authentic
        d["tampered"] = self.tampered
        d["tamper"] = self.tamper.to_dict() if self.tamper else None
        return d


@dataclass(frozen=True)
class HashLookupResult:
    """Direct lookup of a hash (no uploaded file)."""

    document_hash: str
    verified: bool
    source: str  # blockchain | database_only
    ledger_available: bool = True
    ledger_timestamp: int | None = None
    ledger_verified_at: str | None = None
    document: dict[str, Any] | None = None
    warning: str | None = None
    preview: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ComparisonResult:
    """Whether two uploads are the same bytes and/or the same logical document."""

    first_hash: str
    second_hash: str
    identical: bool
    same_document: bool
    first_document_hash: str | None = None
    second_document_hash: str | None = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
