"""Upload verification and tamper classification."""

from adis.verification.engine import VerificationEngine
from adis.verification.models import (
    ComparisonResult,
    HashLookupResult,
    TamperFinding,
    TamperPolicy,
    TamperType,
    VerificationResult,
    VerificationStatus,
)
from adis.verification.tamper import detect_tampering, select_expected

__all__ = [
    "VerificationEngine",
    "ComparisonResult",
    "HashLookupResult",
    "TamperFinding",
    "TamperPolicy",
    "TamperType",
    "VerificationResult",
    "VerificationStatus",
    "detect_tampering",
    "select_expected",
]
