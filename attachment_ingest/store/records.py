from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from attachment_ingest.core.models import ManagedRecord

from .schema import MediaRecordRow


def build_managed_record(row: MediaRecordRow) -> ManagedRecord:
    return ManagedRecord(
        id=row.id,
        author_id=row.author_id,
        title=row.title,
        content=row.content,
        excerpt=row.excerpt,
        mime_type=row.mime_type,
        slug=row.slug,
        file=row.file,
        width=row.width,
        height=row.height,
        tags=[tag.tag for tag in row.tags],
        variants={variant.size_name: variant.file for variant in row.variants},
        attributes={attribute.key: attribute.value for attribute in row.attributes},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def load_managed_record(session: Session, record_id: int) -> Optional[ManagedRecord]:
    row = session.get(MediaRecordRow, record_id)
    if row is None:
        return None
    return build_managed_record(row)


def list_managed_records(
    session: Session, *, limit: int = 100, offset: int = 0
) -> list[ManagedRecord]:
    """Return stored records, newest first."""
    rows = session.scalars(
        select(MediaRecordRow).order_by(MediaRecordRow.id.desc()).limit(limit).offset(offset)
    ).all()
    return [build_managed_record(row) for row in rows]
