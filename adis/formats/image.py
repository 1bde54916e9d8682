"""Image embedding, extraction and watermark rendering with Pillow.

PNG files carry the verification tokens in ``tEXt`` chunks (``Subject``
and ``Keywords``); JPEG files carry them in the comment segment as
``<subject>\\n<keywords>``.
"""

from __future__ import annotations

import logging
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont, PngImagePlugin

from adis.errors import FormatError
from adis.formats.base import (
    PRODUCER,
    ExtractedMetadata,
    FormatHandler,
    WatermarkStamp,
    build_keywords,
    build_subject,
    parse_verification_tokens,
)

logger = logging.getLogger(__name__)

_PATTERN_TEXT = "ORIGINAL COPY\nDO NOT MODIFY"
_PATTERN_FILL = (200, 30, 30, 60)
_BADGE_FILL = (22, 163, 74, 230)
_WHITE = (255, 255, 255, 255)


def _load(data: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise FormatError(f"Unreadable image: {exc}") from exc
    return img


def _font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def _save(img: Image.Image, fmt: str | None, subject: str, keywords: str) -> bytes:
    buf = BytesIO()
    if fmt == "JPEG":
        img.convert("RGB").save(buf, format="JPEG", quality=95,
                                comment=f"{subject}\n{keywords}".encode("utf-8"))
    else:
        info = PngImagePlugin.PngInfo()
        info.add_text("Subject", subject)
        info.add_text("Keywords", keywords)
        info.add_text("Producer", PRODUCER)
        img.save(buf, format="PNG", pnginfo=info)
    return buf.getvalue()


class ImageHandler(FormatHandler):
    name = "image"
    extension = ".png"
    media_type = "image/png"

    def embed(self, data: bytes, document_hash: str) -> bytes:
        img = _load(data)
        return _save(img, img.format, build_subject(document_hash), build_keywords(document_hash))

    def extract(self, data: bytes) -> ExtractedMetadata:
        try:
            img = _load(data)
        except FormatError as exc:
            logger.debug("Image metadata extraction failed: %s", exc)
            return ExtractedMetadata()

        info = dict(img.info)
        info.update(getattr(img, "text", {}) or {})
        subject = info.get("Subject")
        keywords = info.get("Keywords")

        comment = info.get("comment")
        if comment and not (subject or keywords):
            if isinstance(comment, bytes):
                comment = comment.decode("utf-8", errors="replace")
            subject, _, keywords = comment.partition("\n")

        return parse_verification_tokens(subject, keywords)

    # -- Processed variant ----------------------------------------------------

    def stamp_processed(self, data: bytes, document_hash: str, qr_png: bytes, verification_url: str) -> bytes:
        """Paste the QR on a white square bottom-right; output is always PNG."""
        img = _load(data).convert("RGBA")
        width, height = img.size

        qr_side = max(40, min(200, min(width, height) // 3))
        pad = 10
        margin = 20 if min(width, height) > qr_side + 60 else 0
        qr = Image.open(BytesIO(qr_png)).convert("RGBA").resize((qr_side, qr_side), Image.Resampling.NEAREST)

        background = Image.new("RGBA", (qr_side + 2 * pad, qr_side + 2 * pad), _WHITE)
        background.paste(qr, (pad, pad))
        x = max(0, width - background.width - margin)
        y = max(0, height - background.height - margin)
        img.paste(background, (x, y))

        return _save(img, "PNG", build_subject(document_hash), build_keywords(document_hash))

    # -- Watermarked variant --------------------------------------------------

    def render_watermark(self, data: bytes, stamp: WatermarkStamp) -> bytes:
        base = _load(data)
        fmt = base.format
        img = base.convert("RGBA")
        width, height = img.size
        overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))

        self._draw_pattern(overlay)
        draw = ImageDraw.Draw(overlay)
        self._draw_badge(draw, width)
        self._draw_footer(draw, width, height, stamp)

        composed = Image.alpha_composite(img, overlay)
        return _save(
            composed,
            fmt,
            build_subject(stamp.document_hash, watermarked=True),
            build_keywords(stamp.document_hash, stamp),
        )

    def _draw_pattern(self, overlay: Image.Image) -> None:
        font = _font(max(12, overlay.width // 25))
        measure = ImageDraw.Draw(overlay)
        left, top, right, bottom = measure.multiline_textbbox((0, 0), _PATTERN_TEXT, font=font, align="center")
        tile = Image.new("RGBA", (int(right - left) + 40, int(bottom - top) + 40), (0, 0, 0, 0))
        ImageDraw.Draw(tile).multiline_text((20, 20), _PATTERN_TEXT, font=font,
                                            fill=_PATTERN_FILL, align="center")
        tile = tile.rotate(30, expand=True)

        for y in range(0, overlay.height, tile.height):
            for x in range(0, overlay.width, tile.width):
                overlay.paste(tile, (x, y), tile)

    def _draw_badge(self, draw: ImageDraw.ImageDraw, width: int) -> None:
        font = _font(max(10, width // 45))
        text = "BLOCKCHAIN VERIFIED"
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        badge_w, badge_h = (right - left) + 20, (bottom - top) + 14
        x0 = max(0, width - badge_w - 10)
        draw.rectangle([x0, 10, x0 + badge_w, 10 + badge_h], fill=_BADGE_FILL)
        draw.text((x0 + 10, 10 + 7 - top), text, font=font, fill=_WHITE)

    def _draw_footer(self, draw: ImageDraw.ImageDraw, width: int, height: int, stamp: WatermarkStamp) -> None:
        font = _font(max(9, width // 60))
        text = f"Block #{stamp.block_height} | Verified: {stamp.verified_at[:10]}"
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        band_h = (bottom - top) + 10
        draw.rectangle([0, height - band_h, width, height], fill=(0, 0, 0, 140))
        draw.text((10, height - band_h + 5 - top), text, font=font, fill=_WHITE)
