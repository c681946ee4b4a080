from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Sequence

from attachment_ingest.core.models import BatchEntry, Candidate, MetadataRecord


def build_target_path(uploads_root: Path, filename: str, capture_timestamp: datetime) -> Path:
    """<uploads_root>/<YYYY>/<MM>/<filename>, partitioned by capture date."""
    return (
        Path(uploads_root)
        / f"{capture_timestamp.year:04d}"
        / f"{capture_timestamp.month:02d}"
        / filename
    )


def build_entry(
    uploads_root: Path, candidate: Candidate, metadata: MetadataRecord, size_bytes: int
) -> BatchEntry:
    if metadata.capture_timestamp is None:
        raise ValueError(f"{candidate.path} has no capture timestamp")
    return BatchEntry(
        candidate=candidate,
        metadata=metadata,
        size_bytes=size_bytes,
        target_path=build_target_path(
            uploads_root, candidate.filename, metadata.capture_timestamp
        ),
    )


def plan_batch(entries: Sequence[BatchEntry], files_per_batch: int) -> list[BatchEntry]:
    """Oldest first by modified timestamp, ties kept in discovery order."""
    ordered = sorted(entries, key=lambda entry: entry.metadata.modified_timestamp)
    return ordered[: max(files_per_batch, 0)]
