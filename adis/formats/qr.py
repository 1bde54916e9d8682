"""Verification QR codes: rendering and parsing scanned payloads."""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from io import BytesIO
from typing import Any

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from adis.utils import utc_now_iso

_HASH_RE = re.compile(r"0x[a-fA-F0-9]{64}")


@dataclass(frozen=True)
class QRPayload:
    """What a scanned QR code points at."""

    document_hash: str | None
    url: str | None = None
    preview: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def verification_url(base_url: str, document_hash: str) -> str:
    return f"{base_url.rstrip('/')}/verify/{document_hash}"


def build_payload(base_url: str, document_hash: str, preview: bool = False) -> dict[str, Any]:
    """JSON payload for QR codes that carry more than the bare URL."""
    payload = {
        "url": verification_url(base_url, document_hash),
        "documentHash": document_hash,
        "action": "verify",
        "timestamp": utc_now_iso(),
    }
    if preview:
        payload["preview"] = True
    return payload


def render_qr_png(text: str, box_size: int = 10, border: int = 4) -> bytes:
    """Render *text* as a black-on-white PNG QR code."""
    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_M,
                       box_size=box_size, border=border)
    qr.add_data(text)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf)
    return buf.getvalue()


def parse_payload(raw: str) -> QRPayload:
    """Parse scanned QR text: a JSON payload, a verification URL, or a bare hash.

    Raises:
        ValueError: If no document hash can be found.
    """
    raw = (raw or "").strip()
    url: str | None = None
    preview = False
    candidate: str | None = None

    if raw.startswith("{"):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid QR payload: {exc}") from exc
        candidate = data.get("documentHash") or data.get("document_hash") or data.get("hash")
        url = data.get("url")
        preview = bool(data.get("preview") or data.get("isPreview"))
        if not candidate and url:
            candidate = url
    else:
        if raw.startswith(("http://", "https://")):
            url = raw
        candidate = raw

    match = _HASH_RE.search(candidate or "")
    if not match:
        raise ValueError("QR payload does not contain a document hash")
    return QRPayload(document_hash=match.group(0).lower(), url=url, preview=preview)
