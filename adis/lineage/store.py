"""Document store backends.

``DocumentStore`` is the persistence seam for logical documents. Both
backends serialise access with a lock, so every call is an atomic
row-level read or write.
"""

from __future__ import annotations

import abc
import copy
import logging
import os
import re
import sqlite3
import threading
from dataclasses import fields
from pathlib import Path
from typing import Any

from adis.errors import DocumentNotFoundError
from adis.lineage.models import HASH_FIELDS, LogicalDocument

logger = logging.getLogger(__name__)

_COLUMNS = [f.name for f in fields(LogicalDocument)]
_FILENAME_FIELDS = ("original_file_name", "processed_file_path", "watermarked_file_path")
_HASH_FRAGMENT_RE = re.compile(r"[_-]?0x[a-fA-F0-9]+")


def filename_base(filename: str) -> str:
    """Reduce a file name to the part shared between uploads and stored names.

    Drops the extension, any ``0x…`` hash fragment, a leading ``Verified_``
    and a trailing ``_verified``.
    """
    base = Path(filename).stem
    base = _HASH_FRAGMENT_RE.sub("", base)
    if base.lower().startswith("verified_"):
        base = base[len("verified_"):]
    if base.lower().endswith("_verified"):
        base = base[: -len("_verified")]
    return base.strip(" _-")


def _filename_matches(doc: LogicalDocument, fragment: str) -> bool:
    # Stored variant paths are named after hashes and reduce to nothing.
    fragment = fragment.lower()
    for name in _FILENAME_FIELDS:
        value = getattr(doc, name)
        stored = filename_base(os.path.basename(value)).lower() if value else ""
        if stored and fragment in stored:
            return True
    return False


class DocumentStore(abc.ABC):
    """Persistence interface for logical documents."""

    @abc.abstractmethod
    def get(self, document_hash: str) -> LogicalDocument | None:
        """Return the document stored under *document_hash*, or None."""

    @abc.abstractmethod
    def insert(self, doc: LogicalDocument) -> bool:
        """Insert *doc*; returns False (and writes nothing) if it exists."""

    @abc.abstractmethod
    def update(self, document_hash: str, /, **changes: Any) -> LogicalDocument:
        """Apply a partial update and return the new record.

        Raises:
            DocumentNotFoundError: If no record has *document_hash*.
        """

    @abc.abstractmethod
    def list_all(self) -> list[LogicalDocument]:
        """All documents, most recent first."""

    def find_by_any_hash(self, candidate: str) -> LogicalDocument | None:
        """Match *candidate* against the identity hash and all variant hashes."""
        candidate = candidate.lower()
        doc = self.get(candidate)
        if doc is not None:
            return doc
        for doc in self.list_all():
            if any((getattr(doc, f) or "").lower() == candidate for f in HASH_FIELDS[1:]):
                return doc
        return None

    def search_filenames(self, fragment: str) -> list[LogicalDocument]:
        """Documents whose stored file names contain *fragment*, most recent first."""
        if not fragment:
            return []
        return [doc for doc in self.list_all() if _filename_matches(doc, fragment)]

    def count(self) -> int:
        return len(self.list_all())


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dict-based store, used in tests and demo mode."""

    def __init__(self) -> None:
        self._docs: dict[str, tuple[int, LogicalDocument]] = {}
        self._seq = 0
        self._lock = threading.Lock()

    # -- CRUD -----------------------------------------------------------------

    def get(self, document_hash: str) -> LogicalDocument | None:
        with self._lock:
            entry = self._docs.get(document_hash.lower())
            return copy.deepcopy(entry[1]) if entry is not None else None

    def insert(self, doc: LogicalDocument) -> bool:
        with self._lock:
            key = doc.document_hash.lower()
            if key in self._docs:
                return False
            self._seq += 1
            self._docs[key] = (self._seq, copy.deepcopy(doc))
            return True

    def update(self, document_hash: str, /, **changes: Any) -> LogicalDocument:
        with self._lock:
            entry = self._docs.get(document_hash.lower())
            if entry is None:
                raise DocumentNotFoundError(document_hash)
            seq, doc = entry
            for key, value in changes.items():
                if key not in _COLUMNS or key == "document_hash":
                    raise ValueError(f"Cannot update field {key!r}")
                setattr(doc, key, value)
            return copy.deepcopy(doc)

    # -- Queries --------------------------------------------------------------

    def list_all(self) -> list[LogicalDocument]:
        with self._lock:
            entries = sorted(self._docs.values(), key=lambda e: (e[1].created_at, e[0]), reverse=True)
            return [copy.deepcopy(doc) for _, doc in entries]

    def count(self) -> int:
        with self._lock:
            return len(self._docs)

    def clear(self) -> None:
        with self._lock:
            self._docs.clear()


class SQLiteDocumentStore(DocumentStore):
    """Durable store backed by a single SQLite table."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_schema()
        logger.info("SQLite document store opened: %s", path)

    def _create_schema(self) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    document_hash TEXT PRIMARY KEY,
                    student_id TEXT, student_name TEXT, program TEXT,
                    document_type TEXT, institution TEXT, date_issued TEXT,
                    original_file_name TEXT,
                    content_hash TEXT, processed_content_hash TEXT, watermarked_content_hash TEXT,
                    original_file_path TEXT, processed_file_path TEXT, watermarked_file_path TEXT,
                    ledger_tx_id TEXT, ledger_block_height INTEGER,
                    verified INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT
                )
                """
            )
            for column in HASH_FIELDS[1:]:
                self._conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{column} ON documents ({column})")

    @staticmethod
    def _to_doc(row: sqlite3.Row) -> LogicalDocument:
        data = dict(row)
        data["verified"] = bool(data.get("verified"))
        return LogicalDocument.from_dict(data)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # -- CRUD -----------------------------------------------------------------

    def get(self, document_hash: str) -> LogicalDocument | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM documents WHERE document_hash = ?", (document_hash.lower(),)
            ).fetchone()
        return self._to_doc(row) if row is not None else None

    def insert(self, doc: LogicalDocument) -> bool:
        data = doc.to_dict()
        data["document_hash"] = doc.document_hash.lower()
        data["verified"] = int(doc.verified)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._lock, self._conn:
            cur = self._conn.execute(
                f"INSERT OR IGNORE INTO documents ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                [data[c] for c in _COLUMNS],
            )
            return cur.rowcount == 1

    def update(self, document_hash: str, /, **changes: Any) -> LogicalDocument:
        for key in changes:
            if key not in _COLUMNS or key == "document_hash":
                raise ValueError(f"Cannot update field {key!r}")
        if "verified" in changes:
            changes["verified"] = int(bool(changes["verified"]))
        key = document_hash.lower()
        with self._lock, self._conn:
            if changes:
                assignments = ", ".join(f"{c} = ?" for c in changes)
                self._conn.execute(
                    f"UPDATE documents SET {assignments} WHERE document_hash = ?",
                    [*changes.values(), key],
                )
            row = self._conn.execute("SELECT * FROM documents WHERE document_hash = ?", (key,)).fetchone()
        if row is None:
            raise DocumentNotFoundError(document_hash)
        return self._to_doc(row)

    # -- Queries --------------------------------------------------------------

    def find_by_any_hash(self, candidate: str) -> LogicalDocument | None:
        key = candidate.lower()
        with self._lock:
            row = self._conn.execute(
                """
                SELECT * FROM documents
                WHERE document_hash = ? OR content_hash = ?
                   OR processed_content_hash = ? OR watermarked_content_hash = ?
                ORDER BY CASE WHEN document_hash = ? THEN 0 ELSE 1 END, created_at DESC
                LIMIT 1
                """,
                (key, key, key, key, key),
            ).fetchone()
        return self._to_doc(row) if row is not None else None

    def list_all(self) -> list[LogicalDocument]:
        with self._lock:
            rows = self._conn.execute("SELECT * FROM documents ORDER BY created_at DESC, rowid DESC").fetchall()
        return [self._to_doc(r) for r in rows]

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
