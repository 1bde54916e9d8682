"""Logical documents, their stored variants and lineage lookups."""

from adis.lineage.files import FileStorage
from adis.lineage.models import LogicalDocument, Variant
from adis.lineage.store import DocumentStore, InMemoryDocumentStore, SQLiteDocumentStore
from adis.lineage.tracker import LineageTracker, Resolution, filename_base

__all__ = [
    "FileStorage",
    "LogicalDocument",
    "Variant",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "LineageTracker",
    "Resolution",
    "filename_base",
]
