"""Document issuance endpoints - process, finalize, metadata, download."""

import json
import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse

from adis.api.auth import rate_limit_default, rate_limit_upload, validate_document_hash
from adis.api.models import CourseInput, DocumentResponse, FinalizeResponse
from adis.errors import DocumentNotFoundError, FormatError, LedgerUnavailable, RegistrationFailed
from adis.formats.qr import verification_url
from adis.lineage.models import LogicalDocument, Variant
from adis.services import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _document_response(doc: LogicalDocument) -> DocumentResponse:
    services = get_services()
    data = {k: v for k, v in doc.to_dict().items() if k in DocumentResponse.model_fields}
    return DocumentResponse(**data, verification_url=verification_url(services.config.base_url, doc.document_hash))


def _parse_json_field(raw: str | None, name: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Field '{name}' is not valid JSON: {exc.msg}")


@router.post("/process", response_model=DocumentResponse, dependencies=[Depends(rate_limit_upload)])
def process_document(
    file: UploadFile = File(...),
    student_id: str = Form(..., min_length=1, max_length=64),
    student_name: str = Form(..., min_length=1, max_length=200),
    document_type: str = Form(..., min_length=1, max_length=64),
    date_issued: str = Form(...),
    institution: str = Form(default="", max_length=200),
    program: str = Form(default="", max_length=200),
    courses: str | None = Form(default=None),
    grades: str | None = Form(default=None),
):
    """Store the upload, embed hash and QR, and return the new document record."""
    course_rows = _parse_json_field(courses, "courses") or []
    grade_map = _parse_json_field(grades, "grades") or {}
    if not isinstance(course_rows, list) or not isinstance(grade_map, dict):
        raise HTTPException(status_code=400, detail="'courses' must be a list and 'grades' an object.")

    fields = {
        "document_type": document_type,
        "student_id": student_id,
        "student_name": student_name,
        "institution": institution,
        "date_issued": date_issued,
        "courses": [CourseInput.model_validate(c).model_dump() for c in course_rows],
        "grades": grade_map,
    }

    upload = file.file.read()
    if not upload:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    try:
        doc = get_services().issuance.issue(
            fields, upload, file.filename or "upload", mime_type=file.content_type, program=program,
        )
    except (FormatError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _document_response(doc)


@router.post("/{document_hash}/finalize", response_model=FinalizeResponse,
             dependencies=[Depends(rate_limit_default)])
def finalize_document(document_hash: str):
    """Register the document on the ledger and compose its watermarked copy."""
    key = validate_document_hash(document_hash)
    try:
        result = get_services().issuance.finalize(key)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Document not found: {key}")
    except LedgerUnavailable as exc:
        raise HTTPException(status_code=503, detail=f"Ledger unavailable: {exc}")
    except RegistrationFailed as exc:
        raise HTTPException(status_code=502, detail=f"Ledger registration failed: {exc}")
    return FinalizeResponse(**result.to_dict())


@router.get("/{document_hash}", response_model=DocumentResponse, dependencies=[Depends(rate_limit_default)])
def get_document(document_hash: str):
    """Stored metadata for a document (descriptive only, not proof of authenticity)."""
    key = validate_document_hash(document_hash)
    doc = get_services().store.get(key)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"Document not found: {key}")
    return _document_response(doc)


@router.get("/{document_hash}/download", dependencies=[Depends(rate_limit_default)])
def download_document(document_hash: str):
    """Serve the copy a holder should see: watermarked once verified, else processed."""
    key = validate_document_hash(document_hash)
    services = get_services()
    doc = services.store.get(key)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"Document not found: {key}")

    order = (Variant.WATERMARKED, Variant.PROCESSED) if doc.verified else (Variant.PROCESSED,)
    for variant in order:
        path = doc.variant_path(variant)
        if services.files.exists(path):
            return FileResponse(path, filename=f"{variant.label}_{key}{Path(path).suffix}")
    raise HTTPException(status_code=404, detail=f"No downloadable file for {key}")
