"""Keccak-256 content hashing.

One algorithm is used for every hash in the system (canonical document
hashes and raw file hashes) so that values are interchangeable with the
bytes32 keys stored on an Ethereum ledger.
"""

from __future__ import annotations

import re

from Crypto.Hash import keccak

from adis.errors import InvalidHashError

HASH_ALGORITHM = "Keccak-256 (Ethereum standard)"

_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def keccak256_digest(data: bytes | str) -> bytes:
    """Return the raw 32-byte Keccak-256 digest of *data*.

    Strings are UTF-8 encoded before hashing.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def keccak256(data: bytes | str) -> str:
    """Return the ``0x``-prefixed lowercase hex Keccak-256 digest of *data*."""
    return "0x" + keccak256_digest(data).hex()


def is_valid_hash(value: object) -> bool:
    """True if *value* is a ``0x``-prefixed 64-hex string."""
    return isinstance(value, str) and bool(_HASH_RE.match(value))


def normalize_hash(value: str) -> str:
    """Lowercase a hash after validating its shape.

    Raises:
        InvalidHashError: If *value* is not ``0x`` followed by 64 hex digits.
    """
    if not is_valid_hash(value):
        raise InvalidHashError(f"Invalid document hash: {value!r}")
    return value.lower()


def hashes_equal(a: str | None, b: str | None) -> bool:
    """Case-insensitive hash comparison; ``None`` never matches."""
    if not a or not b:
        return False
    return a.lower() == b.lower()
