"""
ADIS (Academic Document Integrity Service)

Canonical hashing, lineage tracking and ledger-anchored verification
of issued academic documents.
"""

__version__ = "0.1.0"

from adis.config import ADISSettings, get_config
from adis.integrity.canonical import DocumentData, CourseLine, encode
from adis.integrity.hashing import HASH_ALGORITHM, keccak256
from adis.verification.models import VerificationResult, VerificationStatus, TamperType

__all__ = [
    "ADISSettings",
    "get_config",
    "DocumentData",
    "CourseLine",
    "encode",
    "HASH_ALGORITHM",
    "keccak256",
    "VerificationResult",
    "VerificationStatus",
    "TamperType",
]
