"""Service wiring: one place that assembles store, files, ledger and engines."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from adis.config import ADISSettings, get_config
from adis.issuance import InMemoryDraftStore, IssuanceService, WatermarkComposer
from adis.issuance.drafts import DraftStore
from adis.ledger import LedgerGateway, build_gateway
from adis.lineage import (
    DocumentStore,
    FileStorage,
    InMemoryDocumentStore,
    LineageTracker,
    SQLiteDocumentStore,
)
from adis.verification import TamperPolicy, VerificationEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: ADISSettings
    store: DocumentStore
    files: FileStorage
    ledger: LedgerGateway
    tracker: LineageTracker
    engine: VerificationEngine
    issuance: IssuanceService
    drafts: DraftStore

    def close(self) -> None:
        self.ledger.close()
        if isinstance(self.store, SQLiteDocumentStore):
            self.store.close()


def build_services(
    cfg: ADISSettings | None = None,
    *,
    store: DocumentStore | None = None,
    ledger: LedgerGateway | None = None,
    initialize_ledger: bool = True,
) -> Services:
    """Assemble the service graph from settings, with optional overrides."""
    cfg = cfg or get_config()
    if store is None:
        store = SQLiteDocumentStore(cfg.database_path) if cfg.database_path else InMemoryDocumentStore()
    if ledger is None:
        ledger = build_gateway(cfg)
        if initialize_ledger:
            ledger.initialize()

    files = FileStorage(cfg.storage_root)
    tracker = LineageTracker(store, files)
    engine = VerificationEngine(tracker, ledger, TamperPolicy.from_settings(cfg))
    issuance = IssuanceService(
        tracker, ledger, WatermarkComposer(files),
        base_url=cfg.base_url, institution=cfg.institution_name,
    )
    return Services(
        config=cfg, store=store, files=files, ledger=ledger, tracker=tracker,
        engine=engine, issuance=issuance, drafts=InMemoryDraftStore(),
    )


_services: Services | None = None
_lock = threading.Lock()


def get_services() -> Services:
    """Return the process-wide service graph (thread-safe, built once)."""
    global _services
    if _services is None:
        with _lock:
            if _services is None:
                _services = build_services()
                logger.info("Services initialised: store=%s ledger=%s",
                            type(_services.store).__name__, _services.ledger.name)
    return _services


def close_services() -> None:
    global _services
    with _lock:
        if _services is not None:
            _services.close()
            _services = None
