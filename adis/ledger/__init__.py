"""Ledger gateways."""

from __future__ import annotations

import logging

from adis.config import ADISSettings
from adis.ledger.gateway import LedgerGateway, LedgerRecord, RegistrationResult
from adis.ledger.jsonrpc import JsonRpcLedgerGateway
from adis.ledger.memory import InMemoryLedger

logger = logging.getLogger(__name__)


def build_gateway(cfg: ADISSettings) -> LedgerGateway:
    """JSON-RPC gateway when an RPC URL and contract are configured, else in-memory."""
    if cfg.ledger_configured:
        return JsonRpcLedgerGateway(
            rpc_url=cfg.ledger_rpc_url,
            contract_address=cfg.ledger_contract_address,
            account=cfg.ledger_account or None,
            timeout=cfg.ledger_timeout,
            max_retries=cfg.ledger_max_retries,
            receipt_timeout=cfg.ledger_receipt_timeout,
            poll_interval=cfg.ledger_poll_interval,
        )
    logger.warning("No ledger RPC configured; using in-memory ledger (simulation mode)")
    return InMemoryLedger()


__all__ = [
    "LedgerGateway",
    "LedgerRecord",
    "RegistrationResult",
    "JsonRpcLedgerGateway",
    "InMemoryLedger",
    "build_gateway",
]
