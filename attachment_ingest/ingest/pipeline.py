from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from attachment_ingest.core.config import IngestConfig
from attachment_ingest.core.events import (
    EventKind,
    EventSink,
    LoggingEventSink,
    MemoryEventSink,
    emit,
)
from attachment_ingest.core.models import (
    BatchEntry,
    PendingFile,
    Rejection,
    RunStatus,
    RunSummary,
)
from attachment_ingest.store.reconciler import RecordMatcher, RecordReconciler
from attachment_ingest.store.repository import MediaStore

from .exif_reader import check_eligibility, format_location, read_metadata
from .planner import build_entry, plan_batch
from .relocator import TARGET_DIR_MODE, relocate
from .scanner import normalize_filename, scan_candidates

logger = logging.getLogger(__name__)

REASON_UNREADABLE = "file unreadable"

_REJECTION_EVENTS = {
    "no file date": EventKind.NO_FILE_DATE,
    "too big": EventKind.TOO_BIG,
}


def resolve_source_folder(config: IngestConfig, sink: EventSink) -> Path:
    """Return the watched folder, creating it when it does not exist yet."""
    source = config.source_path
    if not source.is_dir():
        try:
            source.mkdir(mode=TARGET_DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Cannot create source folder %s: %s", source, exc)
        else:
            emit(sink, EventKind.SOURCE_FOLDER_CREATED, source)
    return source


def _report_config_problems(config: IngestConfig, sink: EventSink) -> bool:
    problems = config.problems()
    if "source_folder" in problems:
        emit(sink, EventKind.SOURCE_FOLDER_UNDEFINED, None, source_folder=config.source_folder)
    if "author_id" in problems:
        emit(sink, EventKind.AUTHOR_UNDEFINED, None, author_id=config.author_id)
    return bool(problems)


def check_folder(
    config: IngestConfig,
    store: MediaStore,
    sink: Optional[EventSink] = None,
    *,
    matcher: Optional[RecordMatcher] = None,
) -> RunSummary:
    """Run one ingest pass over the configured source folder."""
    sink = sink or LoggingEventSink()
    if _report_config_problems(config, sink):
        return RunSummary(status=RunStatus.CONFIG_ERROR)

    source = resolve_source_folder(config, sink)
    logger.info("Ingest: scanning %s", source)
    candidates = list(scan_candidates(source, sink, config.allowed_mime_types))
    if not candidates:
        emit(sink, EventKind.NO_FILES, source)
        return RunSummary(status=RunStatus.NO_FILES)

    summary = RunSummary(status=RunStatus.FINISHED, discovered=len(candidates))
    entries: list[BatchEntry] = []
    for candidate in candidates:
        path = normalize_filename(candidate.path, sink)
        if path != candidate.path:
            candidate = candidate.model_copy(update={"path": path, "filename": path.name})

        try:
            size_bytes = path.stat().st_size
        except OSError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            emit(sink, EventKind.FILE_UNREADABLE, path, reason=REASON_UNREADABLE, error=str(exc))
            summary.rejections.append(Rejection(path=path, reason=REASON_UNREADABLE))
            continue
        metadata = read_metadata(path)
        rejection = check_eligibility(path, metadata, size_bytes)
        if rejection is not None:
            emit(
                sink,
                _REJECTION_EVENTS[rejection.reason],
                path,
                reason=rejection.reason,
                size_bytes=size_bytes,
            )
            summary.rejections.append(rejection)
            continue
        entries.append(build_entry(config.uploads_root, candidate, metadata, size_bytes))

    summary.eligible = len(entries)
    if not entries:
        emit(sink, EventKind.NO_VALID_ENTRIES, source, files=[str(c.path) for c in candidates])
        summary.status = RunStatus.NO_VALID_ENTRIES
        return summary

    batch = plan_batch(entries, config.files_per_batch)
    summary.planned = len(batch)

    reconciler = RecordReconciler(store, config, sink, matcher=matcher)
    for entry in batch:
        moved = relocate(entry, sink)
        if not moved.ok:
            continue
        result = reconciler.process(entry, moved.target_path)
        if not result.ok or result.record_id is None:
            continue
        summary.record_ids.append(result.record_id)
        summary.processed += 1

    emit(
        sink,
        EventKind.FINISHED,
        source,
        planned=[str(entry.candidate.path) for entry in batch],
        processed=summary.processed,
    )
    logger.info("Ingest: processed %d of %d planned files", summary.processed, summary.planned)
    return summary


def preview_folder(config: IngestConfig) -> list[PendingFile]:
    """Describe files waiting in the source folder without touching them."""
    source = config.source_path
    pending: list[PendingFile] = []
    for candidate in scan_candidates(source, MemoryEventSink(), config.allowed_mime_types):
        metadata = read_metadata(candidate.path)
        if metadata is None:
            pending.append(PendingFile(path=candidate.path, filename=candidate.filename))
            continue
        camera = " ".join(p for p in (metadata.camera_make, metadata.camera_model) if p)
        pending.append(
            PendingFile(
                path=candidate.path,
                filename=candidate.filename,
                title=metadata.title,
                keywords=metadata.keywords,
                location=format_location(metadata.gps),
                camera=camera or "Unknown",
                capture_timestamp=metadata.capture_timestamp,
            )
        )
    return pending
