"""Draft endpoints - create, edit, finalize and register template drafts."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from adis.api.auth import rate_limit_default
from adis.api.models import DraftFieldsRequest, DraftResponse
from adis.errors import DraftNotFoundError, InvalidTransitionError, LedgerUnavailable, RegistrationFailed
from adis.issuance.drafts import DraftRecord, register_draft
from adis.services import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drafts", tags=["drafts"], dependencies=[Depends(rate_limit_default)])


def _draft_response(record: DraftRecord) -> DraftResponse:
    return DraftResponse(**record.to_dict())


@router.post("", response_model=DraftResponse, status_code=201)
def create_draft(body: DraftFieldsRequest):
    """Start a new draft from template fields."""
    record = get_services().drafts.create(body.fields)
    logger.info("Draft %s created", record.draft_id)
    return _draft_response(record)


@router.get("/{draft_id}", response_model=DraftResponse)
def get_draft(draft_id: str):
    try:
        return _draft_response(get_services().drafts.get(draft_id))
    except DraftNotFoundError:
        raise HTTPException(status_code=404, detail=f"Draft not found: {draft_id}")


@router.post("/{draft_id}/edit", response_model=DraftResponse)
def edit_draft(draft_id: str, body: DraftFieldsRequest):
    """Merge field changes into a draft that has not been finalized."""
    try:
        record = get_services().drafts.edit(draft_id, body.fields)
    except DraftNotFoundError:
        raise HTTPException(status_code=404, detail=f"Draft not found: {draft_id}")
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _draft_response(record)


@router.post("/{draft_id}/finalize", response_model=DraftResponse)
def finalize_draft(draft_id: str):
    """Freeze the draft and compute its canonical document hash."""
    try:
        record = get_services().drafts.finalize(draft_id)
    except DraftNotFoundError:
        raise HTTPException(status_code=404, detail=f"Draft not found: {draft_id}")
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except (ValueError, TypeError) as exc:
        raise HTTPException(status_code=400, detail=f"Draft fields cannot be hashed: {exc}")
    return _draft_response(record)


@router.post("/{draft_id}/register", response_model=DraftResponse)
def register(draft_id: str):
    """Anchor a finalized draft's hash on the ledger."""
    services = get_services()
    try:
        record = register_draft(services.drafts, services.ledger, draft_id)
    except DraftNotFoundError:
        raise HTTPException(status_code=404, detail=f"Draft not found: {draft_id}")
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except LedgerUnavailable as exc:
        raise HTTPException(status_code=503, detail=f"Ledger unavailable: {exc}")
    except RegistrationFailed as exc:
        raise HTTPException(status_code=502, detail=f"Ledger registration failed: {exc}")
    return _draft_response(record)
