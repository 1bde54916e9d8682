"""Verification endpoints - upload, bulk, QR, compare, hash lookup."""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from adis.api.auth import rate_limit_default, rate_limit_upload, validate_document_hash
from adis.api.models import (
    BulkVerificationResponse,
    ComparisonResponse,
    HashLookupResponse,
    QRVerifyRequest,
    VerificationResponse,
)
from adis.errors import DocumentNotFoundError
from adis.services import get_services
from adis.verification.models import VerificationStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/verify", tags=["verification"])

MAX_BULK_FILES = 20


def _verify_upload(file: UploadFile) -> VerificationResponse:
    data = file.file.read()
    if not data:
        raise HTTPException(status_code=400, detail=f"Uploaded file is empty: {file.filename}")
    result = get_services().engine.verify(data, mime_type=file.content_type, filename=file.filename)
    return VerificationResponse(**result.to_dict(), filename=file.filename)


@router.post("/upload", response_model=VerificationResponse, dependencies=[Depends(rate_limit_upload)])
def verify_upload(file: UploadFile = File(...)):
    """Verify an uploaded file against its lineage and the ledger."""
    return _verify_upload(file)


@router.post("/bulk", response_model=BulkVerificationResponse, dependencies=[Depends(rate_limit_upload)])
def verify_bulk(files: list[UploadFile] = File(...)):
    """Verify several uploads at once and summarise the outcomes."""
    if len(files) > MAX_BULK_FILES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_BULK_FILES} files per request.")
    results = [_verify_upload(f) for f in files]
    counts = {s: sum(1 for r in results if r.status == s.value) for s in VerificationStatus}
    return BulkVerificationResponse(
        total=len(results),
        authentic=counts[VerificationStatus.AUTHENTIC],
        tampered=counts[VerificationStatus.TAMPERED],
        not_verified=counts[VerificationStatus.NOT_VERIFIED],
        not_found=counts[VerificationStatus.NOT_FOUND],
        results=results,
    )


@router.post("/qr", response_model=HashLookupResponse, dependencies=[Depends(rate_limit_default)])
def verify_qr(body: QRVerifyRequest):
    """Look up the document referenced by a scanned QR code."""
    try:
        result = get_services().engine.verify_qr(body.payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Document not found: {exc}")
    return HashLookupResponse(**result.to_dict())


@router.post("/compare", response_model=ComparisonResponse, dependencies=[Depends(rate_limit_upload)])
def compare_documents(first: UploadFile = File(...), second: UploadFile = File(...)):
    """Compare two uploads by bytes and by the document each resolves to."""
    result = get_services().engine.compare(
        first.file.read(), second.file.read(),
        first_name=first.filename, second_name=second.filename,
        first_mime=first.content_type, second_mime=second.content_type,
    )
    return ComparisonResponse(**result.to_dict())


@router.get("/{document_hash}", response_model=HashLookupResponse, dependencies=[Depends(rate_limit_default)])
def verify_hash(document_hash: str):
    """Direct hash lookup: ledger first, then stored metadata."""
    key = validate_document_hash(document_hash)
    try:
        result = get_services().engine.lookup_hash(key)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Document not found: {key}")
    return HashLookupResponse(**result.to_dict())
