from __future__ import annotations

import errno
import logging
import os
import shutil
from pathlib import Path

from attachment_ingest.core.events import EventKind, EventSink, emit
from attachment_ingest.core.models import BatchEntry, RelocationResult

logger = logging.getLogger(__name__)

TARGET_DIR_MODE = 0o755


def move_file(source: Path, target: Path) -> None:
    """Move source onto target, replacing any file already there."""
    if not source.is_file():
        raise FileNotFoundError(errno.ENOENT, "Source file missing", str(source))
    try:
        os.replace(source, target)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        shutil.move(str(source), str(target))


def relocate(entry: BatchEntry, sink: EventSink) -> RelocationResult:
    """Move a batch entry's file into its date-partitioned target folder."""
    source = entry.candidate.path
    target = entry.target_path
    target_folder = target.parent

    try:
        target_folder.mkdir(mode=TARGET_DIR_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Cannot create %s: %s", target_folder, exc)
        emit(sink, EventKind.TARGET_FOLDER_MISSING, target_folder, error=str(exc))
        return RelocationResult(
            ok=False, source_path=source, target_path=target, reason="target folder missing"
        )

    try:
        move_file(source, target)
    except OSError as exc:
        logger.warning("Failed to move %s -> %s: %s", source, target, exc)
        emit(sink, EventKind.FILE_NOT_MOVED, source, target=str(target), error=str(exc))
        return RelocationResult(
            ok=False, source_path=source, target_path=target, reason="file not moved"
        )

    emit(sink, EventKind.FILE_MOVED, source, target=str(target))
    return RelocationResult(ok=True, source_path=source, target_path=target)
