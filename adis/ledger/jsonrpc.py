"""Ethereum JSON-RPC ledger gateway.

Talks to a deployed document registry contract::

    function registerDocument(bytes32 documentHash)
    function verifyDocument(bytes32 documentHash) view returns (bool exists, uint256 timestamp)
    function totalDocuments() view returns (uint256)
    event DocumentRegistered(bytes32 indexed documentHash, uint256 timestamp)

Transactions are sent with ``eth_sendTransaction`` from a node-managed
account (the configured ``ledger_account`` or the node's first account).
Reads are retried with backoff. Sends are attempted once; when the
response is lost the gateway re-checks with a lookup instead of resending.
"""

from __future__ import annotations

import itertools
import logging
import time
from typing import Any

import httpx

from adis.errors import LedgerError, LedgerUnavailable
from adis.integrity.hashing import keccak256, normalize_hash
from adis.ledger.gateway import LedgerGateway, LedgerRecord, RegistrationResult

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0
_DEFAULT_MAX_RETRIES = 3
_DEFAULT_RETRY_DELAY = 1.0


def _selector(signature: str) -> str:
    return keccak256(signature)[:10]


SELECTOR_REGISTER = _selector("registerDocument(bytes32)")
SELECTOR_VERIFY = _selector("verifyDocument(bytes32)")
SELECTOR_TOTAL = _selector("totalDocuments()")
TOPIC_REGISTERED = keccak256("DocumentRegistered(bytes32,uint256)")


def _word(result: str, index: int) -> int:
    body = result[2:] if result.startswith("0x") else result
    chunk = body[index * 64:(index + 1) * 64]
    return int(chunk, 16) if chunk else 0


class JsonRpcLedgerGateway(LedgerGateway):
    """Ledger gateway over Ethereum JSON-RPC using httpx."""

    name = "ethereum json-rpc"

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        account: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        retry_delay: float = _DEFAULT_RETRY_DELAY,
        receipt_timeout: float = 60.0,
        poll_interval: float = 1.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.contract_address = contract_address
        self.account = account or None
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self._client = client or httpx.Client(timeout=timeout)
        self._ids = itertools.count(1)
        self._available = False
        self.chain_id: int | None = None

    # -- Transport ------------------------------------------------------------

    def _call(self, method: str, params: list[Any] | None = None, attempts: int | None = None) -> Any:
        """Issue one JSON-RPC request, retrying transport failures.

        Raises:
            ConnectionError: When every attempt failed at the transport level.
            LedgerError: When the node returned a JSON-RPC error object.
        """
        attempts = attempts or self.max_retries
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        last_exc: Exception | None = None

        for attempt in range(attempts):
            try:
                resp = self._client.post(self.rpc_url, json=payload)
                resp.raise_for_status()
                body = resp.json()
            except (httpx.HTTPStatusError, httpx.RequestError, ValueError) as exc:
                last_exc = exc
                logger.warning(
                    "%s to %s failed (attempt %d/%d): %s",
                    method, self.rpc_url, attempt + 1, attempts, exc,
                )
                if attempt < attempts - 1:
                    time.sleep(self.retry_delay * (attempt + 1))
                continue

            if body.get("error"):
                error = body["error"]
                message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                raise LedgerError(f"{method}: {message}")
            return body.get("result")

        raise ConnectionError(
            f"Failed to reach {self.rpc_url} after {attempts} attempts"
        ) from last_exc

    # -- Lifecycle ------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self._available

    def initialize(self) -> bool:
        """Check the node, the contract code and the sending account."""
        try:
            self.chain_id = int(self._call("eth_chainId"), 16)
            code = self._call("eth_getCode", [self.contract_address, "latest"])
            if not code or code in ("0x", "0x0"):
                logger.error("No contract deployed at %s", self.contract_address)
                self._available = False
                return False
            if self.account is None:
                accounts = self._call("eth_accounts") or []
                self.account = accounts[0] if accounts else None
        except (ConnectionError, LedgerError) as exc:
            logger.warning("Ledger initialisation failed: %s", exc)
            self._available = False
            return False

        self._available = True
        logger.info(
            "Ledger connected: chain_id=%s contract=%s account=%s",
            self.chain_id, self.contract_address, self.account or "read-only",
        )
        return True

    def close(self) -> None:
        self._client.close()

    # -- Reads ----------------------------------------------------------------

    def lookup(self, document_hash: str) -> LedgerRecord:
        if not self._available:
            raise LedgerUnavailable("Ledger is not initialised")
        key = normalize_hash(document_hash)
        try:
            result = self._call("eth_call", [
                {"to": self.contract_address, "data": SELECTOR_VERIFY + key[2:]},
                "latest",
            ])
        except (ConnectionError, LedgerError) as exc:
            raise LedgerUnavailable(str(exc)) from exc
        if not result or result == "0x":
            return LedgerRecord(exists=False)
        exists = _word(result, 0) != 0
        return LedgerRecord(exists=exists, timestamp=_word(result, 1) if exists else None)

    def find_registration(self, document_hash: str) -> RegistrationResult | None:
        key = normalize_hash(document_hash)
        try:
            logs = self._call("eth_getLogs", [{
                "address": self.contract_address,
                "fromBlock": "0x0",
                "toBlock": "latest",
                "topics": [TOPIC_REGISTERED, key],
            }]) or []
        except (ConnectionError, LedgerError) as exc:
            logger.warning("Registration event lookup failed for %s: %s", key, exc)
            return None
        if not logs:
            return None
        log = logs[0]
        return RegistrationResult(
            success=True,
            tx_id=log.get("transactionHash"),
            block_height=int(log["blockNumber"], 16) if log.get("blockNumber") else None,
            already_registered=True,
        )

    def stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "ledger": self.name,
            "available": self._available,
            "chain_id": self.chain_id,
            "contract_address": self.contract_address,
        }
        if self._available:
            try:
                result = self._call("eth_call", [{"to": self.contract_address, "data": SELECTOR_TOTAL}, "latest"])
                stats["total_documents"] = _word(result or "0x", 0)
            except (ConnectionError, LedgerError) as exc:
                logger.warning("Ledger stats query failed: %s", exc)
        return stats

    # -- Writes ---------------------------------------------------------------

    def register(self, document_hash: str) -> RegistrationResult:
        if not self._available:
            return RegistrationResult(success=False, error="Ledger is not initialised")
        if not self.account:
            return RegistrationResult(success=False, error="No signing account configured")
        key = normalize_hash(document_hash)

        try:
            tx_id = self._call("eth_sendTransaction", [{
                "from": self.account,
                "to": self.contract_address,
                "data": SELECTOR_REGISTER + key[2:],
            }], attempts=1)
        except ConnectionError as exc:
            logger.warning("Registration response lost for %s; re-checking ledger", key)
            return self._recheck(key, str(exc))
        except LedgerError as exc:
            if "already" in str(exc).lower():
                return self._recheck(key, str(exc))
            logger.error("Registration rejected for %s: %s", key, exc)
            return RegistrationResult(success=False, error=str(exc))

        receipt = self._wait_for_receipt(tx_id)
        if receipt is None:
            logger.warning("No receipt for %s within %.0fs; re-checking ledger", tx_id, self.receipt_timeout)
            return self._recheck(key, f"Transaction {tx_id} not confirmed in time")
        if receipt.get("status") in ("0x0", 0):
            return RegistrationResult(success=False, tx_id=tx_id, error="Transaction reverted")

        block = int(receipt["blockNumber"], 16)
        logger.info("Registered %s in block %d (tx %s)", key, block, tx_id)
        return RegistrationResult(success=True, tx_id=tx_id, block_height=block)

    def _wait_for_receipt(self, tx_id: str) -> dict[str, Any] | None:
        deadline = time.monotonic() + self.receipt_timeout
        while True:
            try:
                receipt = self._call("eth_getTransactionReceipt", [tx_id])
            except (ConnectionError, LedgerError) as exc:
                logger.warning("Receipt poll failed for %s: %s", tx_id, exc)
                receipt = None
            if receipt:
                return receipt
            if time.monotonic() >= deadline:
                return None
            time.sleep(self.poll_interval)

    def _recheck(self, document_hash: str, reason: str) -> RegistrationResult:
        try:
            record = self.lookup(document_hash)
        except LedgerUnavailable:
            return RegistrationResult(success=False, error=reason)
        if not record.exists:
            return RegistrationResult(success=False, error=reason)
        existing = self.find_registration(document_hash)
        return RegistrationResult(
            success=True,
            tx_id=existing.tx_id if existing else None,
            block_height=existing.block_height if existing else None,
            already_registered=True,
        )
