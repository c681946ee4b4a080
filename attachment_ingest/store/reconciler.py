from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from attachment_ingest.core.config import IngestConfig
from attachment_ingest.core.events import EventKind, EventSink, emit
from attachment_ingest.core.models import (
    BatchEntry,
    InstructionAction,
    ReconcileResult,
    RecordFields,
    RecordInstruction,
)

from .repository import MediaStore

logger = logging.getLogger(__name__)

ALT_TEXT_KEY = "image_alt"
GEO_LATITUDE_KEY = "geo_latitude"
GEO_LONGITUDE_KEY = "geo_longitude"
LOCATION_KEY = "location"
CATEGORY_KEY = "category"

REASON_NOT_SAVED = "record not saved"

# Failures of the record store that skip one file instead of ending the run.
STORE_ERRORS = (SQLAlchemyError, LookupError, OSError)


class RecordMatcher(Protocol):
    def find(self, store: MediaStore, target_path: Path) -> Optional[int]: ...


class FilenameVariantMatcher:
    """Match on the stored original filename or any size-variant filename.

    Two different images sharing a filename are indistinguishable here.
    """

    def find(self, store: MediaStore, target_path: Path) -> Optional[int]:
        filename = target_path.name
        for record in store.find_by_filename_fragment(filename):
            if Path(record.file).name == filename or filename in record.variant_files:
                return record.id
        return None


class RecordReconciler:
    """Turn a relocated file into a create or update of its media record."""

    def __init__(
        self,
        store: MediaStore,
        config: IngestConfig,
        sink: EventSink,
        matcher: Optional[RecordMatcher] = None,
    ):
        self.store = store
        self.config = config
        self.sink = sink
        self.matcher = matcher or FilenameVariantMatcher()

    def find_existing(self, target_path: Path) -> Optional[int]:
        return self.matcher.find(self.store, target_path)

    def reconcile(self, entry: BatchEntry, target_path: Optional[Path] = None) -> RecordInstruction:
        target = target_path or entry.target_path
        metadata = entry.metadata
        mime_type, _ = mimetypes.guess_type(target.name)
        fields = RecordFields(
            author_id=self.config.author_id,
            title=metadata.title,
            content=metadata.caption,
            excerpt=metadata.caption,
            mime_type=mime_type or entry.candidate.mime_type,
            slug=target.stem,
            tags=list(metadata.keywords),
        )
        attributes: dict[str, str | float] = {}
        if metadata.gps is not None:
            attributes[GEO_LATITUDE_KEY] = float(metadata.gps.latitude)
            attributes[GEO_LONGITUDE_KEY] = float(metadata.gps.longitude)
            attributes[LOCATION_KEY] = metadata.gps.location
        if metadata.category:
            attributes[CATEGORY_KEY] = metadata.category

        existing_id = self.find_existing(target)
        if existing_id is None:
            return RecordInstruction(
                action=InstructionAction.CREATE,
                file_path=target,
                fields=fields,
                alt_text=metadata.title,
                attributes=attributes,
            )
        return RecordInstruction(
            action=InstructionAction.UPDATE,
            record_id=existing_id,
            file_path=target,
            fields=None if self.config.no_overwrite_title_description else fields,
            alt_text=metadata.title,
            attributes=attributes,
        )

    def apply(self, instruction: RecordInstruction) -> ReconcileResult:
        if instruction.action is InstructionAction.CREATE:
            if instruction.fields is None:
                raise ValueError("A create instruction needs record fields")
            record_id = self.store.create_record(instruction.fields, instruction.file_path)
        else:
            if instruction.record_id is None:
                raise ValueError("An update instruction needs a record id")
            record_id = instruction.record_id
            if instruction.fields is not None:
                self.store.update_record(record_id, instruction.fields)
                emit(
                    self.sink,
                    EventKind.TITLE_DESCRIPTION_OVERWRITTEN,
                    instruction.file_path,
                    record_id=record_id,
                    title=instruction.fields.title,
                )

        if instruction.regenerate_derivatives:
            meta = self.store.generate_derivatives(record_id, instruction.file_path)
            emit(
                self.sink,
                EventKind.RECORD_METADATA_UPDATED,
                instruction.file_path,
                record_id=record_id,
                sizes=sorted(meta.get("sizes", {})),
            )

        kind = (
            EventKind.RECORD_CREATED
            if instruction.action is InstructionAction.CREATE
            else EventKind.RECORD_UPDATED
        )
        emit(self.sink, kind, instruction.file_path, record_id=record_id)

        alt_text_set = False
        if instruction.alt_text and not self.store.get_attribute(record_id, ALT_TEXT_KEY):
            self.store.set_attribute(record_id, ALT_TEXT_KEY, instruction.alt_text)
            alt_text_set = True

        for key, value in instruction.attributes.items():
            self.store.set_attribute(record_id, key, value)

        return ReconcileResult(
            record_id=record_id, action=instruction.action, alt_text_set=alt_text_set
        )

    def process(self, entry: BatchEntry, target_path: Optional[Path] = None) -> ReconcileResult:
        """Reconcile and apply one entry. Store failures are reported, not raised."""
        target = target_path or entry.target_path
        action = InstructionAction.CREATE
        try:
            instruction = self.reconcile(entry, target)
            action = instruction.action
            logger.debug("Applying %s for %s", action.value, target)
            return self.apply(instruction)
        except STORE_ERRORS as exc:
            logger.warning("Could not save record for %s: %s", target, exc)
            self.store.rollback()
            emit(
                self.sink,
                EventKind.RECORD_NOT_SAVED,
                target,
                action=action.value,
                error=str(exc),
            )
            return ReconcileResult(ok=False, action=action, reason=REASON_NOT_SAVED)
