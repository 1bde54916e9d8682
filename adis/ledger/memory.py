"""Process-local ledger for demo mode and tests."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

from adis.errors import LedgerUnavailable
from adis.integrity.hashing import keccak256, normalize_hash
from adis.ledger.gateway import LedgerGateway, LedgerRecord, RegistrationResult

logger = logging.getLogger(__name__)


class InMemoryLedger(LedgerGateway):
    """At most one record per hash; one block per registration."""

    name = "in-memory ledger"

    def __init__(self, available: bool = True, start_block: int = 1) -> None:
        self._records: dict[str, tuple[str, int, int]] = {}
        self._next_block = start_block
        self._available = available
        self._lock = threading.Lock()

    @property
    def is_available(self) -> bool:
        return self._available

    def set_available(self, available: bool) -> None:
        self._available = available

    def register(self, document_hash: str) -> RegistrationResult:
        if not self._available:
            return RegistrationResult(success=False, error=f"{self.name} is not available")
        key = normalize_hash(document_hash)
        with self._lock:
            if key in self._records:
                tx_id, block, _ = self._records[key]
                return RegistrationResult(success=True, tx_id=tx_id, block_height=block,
                                          already_registered=True)
            block = self._next_block
            self._next_block += 1
            tx_id = keccak256(f"{key}:{block}")
            self._records[key] = (tx_id, block, int(time.time()))
        logger.info("Registered %s in block %d", key, block)
        return RegistrationResult(success=True, tx_id=tx_id, block_height=block)

    def lookup(self, document_hash: str) -> LedgerRecord:
        if not self._available:
            raise LedgerUnavailable(f"{self.name} is not available")
        with self._lock:
            entry = self._records.get(document_hash.lower())
        if entry is None:
            return LedgerRecord(exists=False)
        return LedgerRecord(exists=True, timestamp=entry[2])

    def find_registration(self, document_hash: str) -> RegistrationResult | None:
        with self._lock:
            entry = self._records.get(document_hash.lower())
        if entry is None:
            return None
        return RegistrationResult(success=True, tx_id=entry[0], block_height=entry[1],
                                  already_registered=True)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = len(self._records)
        return {"ledger": self.name, "available": self._available, "total_documents": total}
