"""Canonical encoding and content hashing."""

from adis.integrity.canonical import CourseLine, DocumentData, document_hash, encode, normalize_date
from adis.integrity.hashing import (
    HASH_ALGORITHM,
    hashes_equal,
    is_valid_hash,
    keccak256,
    keccak256_digest,
    normalize_hash,
)

__all__ = [
    "CourseLine",
    "DocumentData",
    "document_hash",
    "encode",
    "normalize_date",
    "HASH_ALGORITHM",
    "hashes_equal",
    "is_valid_hash",
    "keccak256",
    "keccak256_digest",
    "normalize_hash",
]
