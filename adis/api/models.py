"""Pydantic request/response models for the ADIS API."""

from typing import Any

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    ledger_available: bool
    ledger: dict[str, Any] = Field(default_factory=dict)
    documents_stored: int = 0
    demo_mode: bool = False


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class CourseInput(BaseModel):
    code: str = ""
    name: str = ""
    units: float | int | str | None = None
    grade: float | int | str | None = None


class DocumentResponse(BaseModel):
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
    ledger_tx_id: str | None = None
    ledger_block_height: int | None = None
    verified: bool = False
    created_at: str = ""
    verification_url: str | None = None


class FinalizeResponse(BaseModel):
    document_hash: str
    verified: bool
    tx_id: str | None = None
    block_height: int | None = None
    already_registered: bool = False
    already_finalized: bool = False
    watermarked: bool = False
    watermarked_file_path: str | None = None
    watermark_error: str | None = None


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

class TamperFindingResponse(BaseModel):
    tamper_type: str
    confidence: int
    message: str
    expected_variant: str | None = None
    expected_hash: str | None = None
    expected_size: int = 0
    uploaded_size: int = 0
    size_difference: int = 0
    size_ratio: float = 1.0


class VerificationResponse(BaseModel):
    status: str
    authentic: bool
    tampered: bool
    confidence: int = 0
    message: str
    uploaded_hash: str
    hash_algorithm: str
    embedded_hash: str | None = None
    is_watermarked: bool = False
    resolution_method: str | None = None
    matched_variant: str | None = None
    document: dict[str, Any] | None = None
    ledger_available: bool = True
    ledger_timestamp: int | None = None
    ledger_verified_at: str | None = None
    tamper: TamperFindingResponse | None = None
    filename: str | None = None


class BulkVerificationResponse(BaseModel):
    total: int
    authentic: int
    tampered: int
    not_verified: int
    not_found: int
    results: list[VerificationResponse]


class HashLookupResponse(BaseModel):
    document_hash: str
    verified: bool
    source: str
    ledger_available: bool = True
    ledger_timestamp: int | None = None
    ledger_verified_at: str | None = None
    document: dict[str, Any] | None = None
    warning: str | None = None
    preview: bool = False


class QRVerifyRequest(BaseModel):
    payload: str = Field(..., min_length=1, max_length=2000)

    @field_validator("payload")
    @classmethod
    def strip_payload(cls, v: str) -> str:
        return v.strip()


class ComparisonResponse(BaseModel):
    first_hash: str
    second_hash: str
    identical: bool
    same_document: bool
    first_document_hash: str | None = None
    second_document_hash: str | None = None
    notes: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------

class DraftFieldsRequest(BaseModel):
    fields: dict[str, Any] = Field(..., min_length=1)


class DraftResponse(BaseModel):
    draft_id: str
    status: str
    revision: int
    fields: dict[str, Any]
    document_hash: str | None = None
    tx_id: str | None = None
    block_height: int | None = None
    created_at: str
    updated_at: str
