"""Record store for ingested media and the reconciliation against it."""

from .reconciler import FilenameVariantMatcher, RecordMatcher, RecordReconciler
from .records import build_managed_record, list_managed_records, load_managed_record
from .repository import MediaStore, SqlMediaStore
from .schema import (
    Base,
    MediaAttributeRow,
    MediaRecordRow,
    MediaTagRow,
    MediaVariantRow,
    create_engine_from_url,
    init_db,
    session_factory,
)

__all__ = [
    "Base",
    "FilenameVariantMatcher",
    "MediaAttributeRow",
    "MediaRecordRow",
    "MediaStore",
    "MediaTagRow",
    "MediaVariantRow",
    "RecordMatcher",
    "RecordReconciler",
    "SqlMediaStore",
    "build_managed_record",
    "create_engine_from_url",
    "init_db",
    "list_managed_records",
    "load_managed_record",
    "session_factory",
]
