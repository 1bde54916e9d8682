"""Ledger gateway interface.

The ledger stores one record per document hash (hash-only contract; all
descriptive metadata stays off-chain). A record, once written, is never
changed, so registration is idempotent from the caller's perspective.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import asdict, dataclass
from typing import Any

from adis.errors import LedgerUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerRecord:
    """Outcome of a ledger lookup."""

    exists: bool
    timestamp: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a registration attempt."""

    success: bool
    tx_id: str | None = None
    block_height: int | None = None
    error: str | None = None
    already_registered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class LedgerGateway(abc.ABC):
    """Registers and looks up document hashes on an external ledger."""

    name: str = "ledger"

    @property
    @abc.abstractmethod
    def is_available(self) -> bool:
        """True once the ledger has been initialised and is reachable."""

    @abc.abstractmethod
    def register(self, document_hash: str) -> RegistrationResult:
        """Write *document_hash* to the ledger.

        Never raises for ledger-side failures; returns ``success=False``
        with an ``error`` message instead.
        """

    @abc.abstractmethod
    def lookup(self, document_hash: str) -> LedgerRecord:
        """Query the ledger for *document_hash*.

        Raises:
            LedgerUnavailable: If the ledger is not initialised or unreachable.
        """

    @abc.abstractmethod
    def find_registration(self, document_hash: str) -> RegistrationResult | None:
        """Transaction id and block height of an existing record, if known."""

    def initialize(self) -> bool:
        """Connect to the ledger; returns availability."""
        return self.is_available

    def stats(self) -> dict[str, Any]:
        return {"ledger": self.name, "available": self.is_available}

    def close(self) -> None:
        """Release any held connections."""

    def ensure_registered(self, document_hash: str) -> RegistrationResult:
        """Lookup-first registration.

        An existing record is reported as success with
        ``already_registered=True`` and its original block height.

        Raises:
            LedgerUnavailable: If the ledger cannot be queried.
        """
        if not self.is_available:
            raise LedgerUnavailable(f"{self.name} is not initialised")

        record = self.lookup(document_hash)
        if record.exists:
            existing = self.find_registration(document_hash)
            logger.info("Document %s already on ledger; skipping registration", document_hash)
            return RegistrationResult(
                success=True,
                tx_id=existing.tx_id if existing else None,
                block_height=existing.block_height if existing else None,
                already_registered=True,
            )
        return self.register(document_hash)
