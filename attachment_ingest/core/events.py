"""Structured events emitted during an ingest run.

Every stage reports what it did through a single ``EventSink``. Consumers
decide what to do with the events: log them, keep them for inspection, or
append them to the error/success log files.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger("attachment_ingest.events")


class EventKind(str, Enum):
    SOURCE_FOLDER_UNDEFINED = "source_folder_undefined"
    AUTHOR_UNDEFINED = "author_undefined"
    SOURCE_FOLDER_CREATED = "source_folder_created"
    NO_FILES = "no_files"
    FILETYPE_NOT_ALLOWED = "filetype_not_allowed"
    FILENAME_NORMALIZED = "filename_normalized"
    RENAME_FAILED = "rename_failed"
    NO_FILE_DATE = "no_file_date"
    TOO_BIG = "too_big"
    NO_VALID_ENTRIES = "no_valid_entries"
    TARGET_FOLDER_MISSING = "target_folder_missing"
    FILE_MOVED = "file_moved"
    FILE_NOT_MOVED = "file_not_moved"
    FILE_UNREADABLE = "file_unreadable"
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    TITLE_DESCRIPTION_OVERWRITTEN = "title_description_overwritten"
    RECORD_METADATA_UPDATED = "record_metadata_updated"
    RECORD_NOT_SAVED = "record_not_saved"
    FINISHED = "finished"


FAILURE_KINDS = frozenset(
    {
        EventKind.SOURCE_FOLDER_UNDEFINED,
        EventKind.AUTHOR_UNDEFINED,
        EventKind.SOURCE_FOLDER_CREATED,
        EventKind.FILETYPE_NOT_ALLOWED,
        EventKind.RENAME_FAILED,
        EventKind.NO_FILE_DATE,
        EventKind.TOO_BIG,
        EventKind.NO_VALID_ENTRIES,
        EventKind.TARGET_FOLDER_MISSING,
        EventKind.FILE_NOT_MOVED,
        EventKind.FILE_UNREADABLE,
        EventKind.RECORD_NOT_SAVED,
    }
)


class IngestEvent(BaseModel):
    kind: EventKind
    path: Optional[Path] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_failure(self) -> bool:
        return self.kind in FAILURE_KINDS


class EventSink(Protocol):
    def emit(self, event: IngestEvent) -> None: ...


def emit(sink: EventSink, kind: EventKind, path: Optional[Path] = None, **payload: Any) -> None:
    sink.emit(IngestEvent(kind=kind, path=path, payload=payload))


class LoggingEventSink:
    """Write events to the standard logging tree."""

    def __init__(self, target: logging.Logger = logger):
        self.logger = target

    def emit(self, event: IngestEvent) -> None:
        level = logging.WARNING if event.is_failure else logging.INFO
        self.logger.log(level, "%s %s %s", event.kind.value, event.path or "-", event.payload)


class MemoryEventSink:
    """Keep events in a list, in emission order."""

    def __init__(self) -> None:
        self.events: list[IngestEvent] = []

    def emit(self, event: IngestEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [event.kind for event in self.events]

    def of_kind(self, kind: EventKind) -> list[IngestEvent]:
        return [event for event in self.events if event.kind == kind]


class LogFileEventSink:
    """Append events to ``error.log`` or ``success.log`` in a log directory."""

    def __init__(self, log_dir: Path):
        self.log_dir = Path(log_dir)
        self.error_log = self.log_dir / "error.log"
        self.success_log = self.log_dir / "success.log"

    def emit(self, event: IngestEvent) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        target = self.error_log if event.is_failure else self.success_log
        payload = dict(event.payload)
        if event.path is not None:
            payload.setdefault("path", str(event.path))
        line = "\t".join(
            [event.created_at.isoformat(), event.kind.value, json.dumps(payload, default=str)]
        )
        with target.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


class FanoutEventSink:
    def __init__(self, *sinks: EventSink):
        self.sinks = list(sinks)

    def emit(self, event: IngestEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)
