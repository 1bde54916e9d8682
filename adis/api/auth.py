"""API authentication, rate limiting, and request tracing middleware.

Provides:
- Bearer token authentication via ``ADIS_API_KEY``
- Per-key sliding-window rate limiting held in an injectable limiter
- ``X-Request-ID`` response header for tracing
- Request logging with hashed client IP
"""

import hashlib
import logging
import re
import threading
import time
import uuid
from collections import defaultdict

from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from adis.config import get_config

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Input validation helpers
# ---------------------------------------------------------------------------

_DOCUMENT_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def validate_document_hash(document_hash: str) -> str:
    """Validate a 0x-prefixed 64-hex document hash and lowercase it."""
    if not _DOCUMENT_HASH_RE.match(document_hash):
        raise HTTPException(
            status_code=400,
            detail="Invalid document hash. Expected 0x followed by 64 hex characters.",
        )
    return document_hash.lower()


# ---------------------------------------------------------------------------
# API key authentication
# ---------------------------------------------------------------------------

def require_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> str:
    """Validate the Bearer token against ``ADIS_API_KEY``.

    Raises 401 if the key is missing or invalid.  Skipped entirely when
    ``ADIS_DEMO_MODE=true`` (demo mode allows unauthenticated access).
    """
    cfg = get_config()

    if cfg.demo_mode:
        return "demo"

    if not cfg.api_key:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: ADIS_API_KEY is not set.",
        )

    if credentials is None or credentials.credentials != cfg.api_key:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key. Provide 'Authorization: Bearer <key>' header.",
        )
    return credentials.credentials


# ---------------------------------------------------------------------------
# Rate limiting (in-memory sliding window)
# ---------------------------------------------------------------------------

class SlidingWindowRateLimiter:
    """Per-key sliding-window limiter.

    Buckets whose newest entry is older than the window are evicted by a
    sweep that runs at most every ``sweep_interval`` seconds, so idle keys
    do not accumulate.
    """

    def __init__(self, max_requests: int = 60, window_seconds: float = 60.0,
                 sweep_interval: float = 300.0, clock=time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._buckets: dict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def check(self, key: str, max_requests: int | None = None) -> None:
        """Record a request for *key*; raises 429 when over the limit."""
        limit = max_requests or self.max_requests
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)

            bucket = [ts for ts in self._buckets[key] if now - ts < self.window_seconds]
            if len(bucket) >= limit:
                self._buckets[key] = bucket
                raise HTTPException(
                    status_code=429,
                    detail=f"Rate limit exceeded. Max {limit} requests per {int(self.window_seconds)}s.",
                )
            bucket.append(now)
            self._buckets[key] = bucket

    def _sweep(self, now: float) -> None:
        stale = [k for k, b in self._buckets.items() if not b or now - b[-1] >= self.window_seconds]
        for key in stale:
            del self._buckets[key]
        self._last_sweep = now
        if stale:
            logger.debug("Rate limiter evicted %d idle bucket(s)", len(stale))

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Limiter held on ``app.state``; created lazily from config."""
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        cfg = get_config()
        limiter = SlidingWindowRateLimiter(
            max_requests=cfg.rate_limit_per_minute,
            sweep_interval=cfg.rate_limit_sweep_seconds,
        )
        request.app.state.rate_limiter = limiter
    return limiter


def rate_limit_default(request: Request, api_key: str = Depends(require_api_key)):
    """Default rate limit for document and verification endpoints."""
    get_rate_limiter(request).check(f"default:{api_key}")


def rate_limit_upload(request: Request, api_key: str = Depends(require_api_key)):
    """Tighter limit for endpoints that accept file uploads (half the default)."""
    limiter = get_rate_limiter(request)
    limiter.check(f"upload:{api_key}", max_requests=max(1, limiter.max_requests // 2))


# ---------------------------------------------------------------------------
# Request-ID and logging middleware
# ---------------------------------------------------------------------------

def _hash_ip(ip: str | None) -> str:
    """Return a one-way hash of the client IP for privacy-safe logging."""
    if not ip:
        return "unknown"
    return hashlib.sha256(ip.encode()).hexdigest()[:12]


async def request_logging_middleware(request: Request, call_next):
    """Add X-Request-ID header and log every request with timing."""
    request_id = str(uuid.uuid4())
    start = time.monotonic()

    response: Response = await call_next(request)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    response.headers["X-Request-ID"] = request_id

    logger.info(
        "request_id=%s ip=%s method=%s path=%s status=%d duration_ms=%d",
        request_id,
        _hash_ip(request.client.host if request.client else None),
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response
