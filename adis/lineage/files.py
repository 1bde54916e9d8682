"""File storage for document variants.

Paths are derived from the document hash, so concurrent writers for the
same document target the same file. Writes go to a temporary file in the
destination directory followed by an atomic rename.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from adis.lineage.models import Variant

logger = logging.getLogger(__name__)


class FileStorage:
    """Hash-addressed storage under ``originals/``, ``processed/`` and ``watermarked/``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, variant: Variant, document_hash: str, extension: str) -> Path:
        if extension and not extension.startswith("."):
            extension = "." + extension
        stem = f"{document_hash}_verified" if variant is Variant.WATERMARKED else document_hash
        return self.root / variant.bucket / f"{stem}{extension.lower()}"

    def write(self, path: str | Path, data: bytes) -> Path:
        """Atomically write *data* to *path*, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return path

    def copy(self, source: str | Path, dest: str | Path) -> Path:
        """Byte-for-byte copy through the same atomic write path."""
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as out, open(source, "rb") as src:
                shutil.copyfileobj(src, out)
            os.replace(tmp, dest)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        return dest

    def read(self, path: str | Path | None) -> bytes | None:
        """Return the file's bytes, or None when it is missing or unreadable."""
        if not path:
            return None
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None

    def exists(self, path: str | Path | None) -> bool:
        return bool(path) and Path(path).is_file()
