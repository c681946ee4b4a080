from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from attachment_ingest.core.models import RecordFields, StoredRecord

from .derivatives import DEFAULT_SIZES, build_size_variants
from .schema import MediaAttributeRow, MediaRecordRow, MediaTagRow, MediaVariantRow

logger = logging.getLogger(__name__)


class MediaStore(Protocol):
    """Operations the ingest pipeline needs from the record store."""

    def find_by_filename_fragment(self, fragment: str) -> list[StoredRecord]: ...

    def create_record(self, fields: RecordFields, file_path: Path) -> int: ...

    def update_record(self, record_id: int, fields: RecordFields) -> int: ...

    def get_attribute(self, record_id: int, key: str) -> Optional[Any]: ...

    def set_attribute(self, record_id: int, key: str, value: Any) -> None: ...

    def generate_derivatives(self, record_id: int, file_path: Path) -> dict[str, Any]: ...

    def rollback(self) -> None: ...


def _to_stored(row: MediaRecordRow) -> StoredRecord:
    return StoredRecord(
        id=row.id,
        file=row.file,
        variant_files=[Path(variant.file).name for variant in row.variants],
    )


class SqlMediaStore:
    """MediaStore backed by the SQLAlchemy schema in ``store.schema``.

    With ``autocommit`` every mutation is committed straight away, so a record
    survives even if a later file in the same run fails.
    """

    def __init__(
        self,
        session: Session,
        *,
        sizes: Mapping[str, int] = DEFAULT_SIZES,
        autocommit: bool = True,
    ):
        self.session = session
        self.sizes = sizes
        self.autocommit = autocommit

    def _sync(self) -> None:
        if self.autocommit:
            self.session.commit()
        else:
            self.session.flush()

    def rollback(self) -> None:
        self.session.rollback()

    def _get(self, record_id: int) -> MediaRecordRow:
        row = self.session.get(MediaRecordRow, record_id)
        if row is None:
            raise LookupError(f"Media record {record_id} not found")
        return row

    def find_by_filename_fragment(self, fragment: str) -> list[StoredRecord]:
        pattern = f"%{fragment}%"
        rows = (
            self.session.scalars(
                select(MediaRecordRow)
                .outerjoin(MediaVariantRow)
                .where(or_(MediaRecordRow.file.like(pattern), MediaVariantRow.file.like(pattern)))
                .order_by(MediaRecordRow.id)
            )
            .unique()
            .all()
        )
        return [_to_stored(row) for row in rows]

    def _apply_fields(self, row: MediaRecordRow, fields: RecordFields) -> None:
        row.author_id = fields.author_id
        row.title = fields.title
        row.content = fields.content
        row.excerpt = fields.excerpt
        row.mime_type = fields.mime_type
        row.slug = fields.slug
        row.tags = [MediaTagRow(tag=tag) for tag in fields.tags]

    def create_record(self, fields: RecordFields, file_path: Path) -> int:
        row = MediaRecordRow(author_id=fields.author_id, file=str(file_path))
        self._apply_fields(row, fields)
        self.session.add(row)
        self._sync()
        logger.debug("Created media record %s for %s", row.id, file_path)
        return row.id

    def update_record(self, record_id: int, fields: RecordFields) -> int:
        row = self._get(record_id)
        self._apply_fields(row, fields)
        self._sync()
        return row.id

    def get_attribute(self, record_id: int, key: str) -> Optional[Any]:
        attribute = self.session.get(MediaAttributeRow, (record_id, key))
        return attribute.value if attribute else None

    def set_attribute(self, record_id: int, key: str, value: Any) -> None:
        attribute = self.session.get(MediaAttributeRow, (record_id, key))
        if attribute is None:
            self.session.add(MediaAttributeRow(record_id=record_id, key=key, value=value))
        else:
            attribute.value = value
        self._sync()

    def generate_derivatives(self, record_id: int, file_path: Path) -> dict[str, Any]:
        """Rebuild size variants for a record and store the resulting metadata."""
        row = self._get(record_id)
        original_size, variants = build_size_variants(Path(file_path), self.sizes)
        row.file = str(file_path)
        if original_size:
            row.width, row.height = original_size
        # Old variants must be gone before new ones reuse their size names.
        row.variants.clear()
        self.session.flush()
        row.variants.extend(
            MediaVariantRow(size_name=v.name, file=v.path.name, width=v.width, height=v.height)
            for v in variants
        )
        self._sync()
        return {
            "file": row.file,
            "width": row.width,
            "height": row.height,
            "sizes": {
                v.name: {"file": v.path.name, "width": v.width, "height": v.height}
                for v in variants
            },
        }
