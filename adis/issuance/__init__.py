"""Issuance, finalisation and watermark composition."""

from adis.issuance.drafts import DraftRecord, DraftStatus, DraftStore, InMemoryDraftStore, register_draft
from adis.issuance.service import FinalizeResult, IssuanceService, document_type_name
from adis.issuance.watermark import WatermarkComposer

__all__ = [
    "DraftRecord",
    "DraftStatus",
    "DraftStore",
    "InMemoryDraftStore",
    "register_draft",
    "FinalizeResult",
    "IssuanceService",
    "document_type_name",
    "WatermarkComposer",
]
