"""Template draft lifecycle: draft -> edited -> finalized -> ledger_registered.

Finalisation freezes the fields and computes the canonical hash with the
same encoder the upload pipeline uses, so a Word-template document and a
PDF carrying the same fields share one identity.
"""

from __future__ import annotations

import abc
import copy
import enum
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

from adis.errors import DraftNotFoundError, InvalidTransitionError, LedgerUnavailable, RegistrationFailed
from adis.integrity.canonical import document_hash
from adis.ledger.gateway import LedgerGateway
from adis.utils import utc_now_iso

logger = logging.getLogger(__name__)


class DraftStatus(str, enum.Enum):
    DRAFT = "draft"
    EDITED = "edited"
    FINALIZED = "finalized"
    LEDGER_REGISTERED = "ledger_registered"


_TRANSITIONS: dict[DraftStatus, set[DraftStatus]] = {
    DraftStatus.DRAFT: {DraftStatus.EDITED, DraftStatus.FINALIZED},
    DraftStatus.EDITED: {DraftStatus.EDITED, DraftStatus.FINALIZED},
    DraftStatus.FINALIZED: {DraftStatus.LEDGER_REGISTERED},
    DraftStatus.LEDGER_REGISTERED: set(),
}


@dataclass
class DraftRecord:
    draft_id: str
    fields: dict[str, Any]
    status: DraftStatus = DraftStatus.DRAFT
    revision: int = 1
    document_hash: str | None = None
    tx_id: str | None = None
    block_height: int | None = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


class DraftStore(abc.ABC):
    """Persistence for drafts with enforced lifecycle transitions."""

    @abc.abstractmethod
    def _load(self, draft_id: str) -> DraftRecord | None: ...

    @abc.abstractmethod
    def _save(self, record: DraftRecord) -> None: ...

    @abc.abstractmethod
    def list_by_status(self, status: DraftStatus) -> list[DraftRecord]: ...

    def get(self, draft_id: str) -> DraftRecord:
        record = self._load(draft_id)
        if record is None:
            raise DraftNotFoundError(draft_id)
        return record

    def _transition(self, record: DraftRecord, target: DraftStatus) -> DraftRecord:
        if target not in _TRANSITIONS[record.status]:
            raise InvalidTransitionError(
                f"Draft {record.draft_id}: cannot move from {record.status.value} to {target.value}"
            )
        record.status = target
        record.updated_at = utc_now_iso()
        return record

    # -- Lifecycle ------------------------------------------------------------

    def create(self, fields: dict[str, Any]) -> DraftRecord:
        record = DraftRecord(draft_id=uuid.uuid4().hex, fields=dict(fields))
        self._save(record)
        return record

    def edit(self, draft_id: str, changes: dict[str, Any]) -> DraftRecord:
        record = self._transition(self.get(draft_id), DraftStatus.EDITED)
        record.fields.update(changes)
        record.revision += 1
        self._save(record)
        return record

    def finalize(self, draft_id: str) -> DraftRecord:
        """Freeze the draft and compute its canonical document hash."""
        record = self._transition(self.get(draft_id), DraftStatus.FINALIZED)
        record.document_hash = document_hash(record.fields)
        self._save(record)
        logger.info("Draft %s finalized as %s", draft_id, record.document_hash)
        return record

    def mark_registered(self, draft_id: str, tx_id: str | None, block_height: int | None) -> DraftRecord:
        record = self._transition(self.get(draft_id), DraftStatus.LEDGER_REGISTERED)
        record.tx_id = tx_id
        record.block_height = block_height
        self._save(record)
        return record


class InMemoryDraftStore(DraftStore):
    """Thread-safe dict-backed draft store."""

    def __init__(self) -> None:
        self._drafts: dict[str, DraftRecord] = {}
        self._lock = threading.Lock()

    def _load(self, draft_id: str) -> DraftRecord | None:
        with self._lock:
            record = self._drafts.get(draft_id)
            return copy.deepcopy(record) if record is not None else None

    def _save(self, record: DraftRecord) -> None:
        with self._lock:
            self._drafts[record.draft_id] = copy.deepcopy(record)

    def list_by_status(self, status: DraftStatus) -> list[DraftRecord]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._drafts.values() if r.status is status]


def register_draft(store: DraftStore, ledger: LedgerGateway, draft_id: str) -> DraftRecord:
    """Register a finalized draft's hash on the ledger.

    Raises:
        InvalidTransitionError: If the draft is not finalized.
        LedgerUnavailable: If the ledger cannot be reached.
        RegistrationFailed: If the ledger rejected the registration.
    """
    record = store.get(draft_id)
    if record.status is not DraftStatus.FINALIZED or not record.document_hash:
        raise InvalidTransitionError(f"Draft {draft_id} must be finalized before registration")
    if not ledger.is_available:
        raise LedgerUnavailable(f"{ledger.name} is not initialised")

    result = ledger.ensure_registered(record.document_hash)
    if not result.success:
        raise RegistrationFailed(result.error or f"Registration of {record.document_hash} failed")
    return store.mark_registered(draft_id, result.tx_id, result.block_height)
