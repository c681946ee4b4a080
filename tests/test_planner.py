from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from attachment_ingest.core.models import BatchEntry, Candidate, MetadataRecord
from attachment_ingest.ingest.planner import build_entry, build_target_path, plan_batch

BASE = datetime(2020, 5, 17, 8, 0, tzinfo=timezone.utc)


def _entry(name: str, modified: datetime, captured: datetime = BASE) -> BatchEntry:
    candidate = Candidate(path=Path("/drop") / name, filename=name, mime_type="image/jpeg")
    metadata = MetadataRecord(capture_timestamp=captured, modified_timestamp=modified)
    return build_entry(Path("/uploads"), candidate, metadata, size_bytes=1)


def test_target_path_uses_capture_year_and_month() -> None:
    path = build_target_path(Path("/uploads"), "IMG_1.jpg", datetime(2019, 3, 9))
    assert path == Path("/uploads/2019/03/IMG_1.jpg")


def test_entry_target_follows_capture_not_modified_date() -> None:
    entry = _entry("a.jpg", modified=datetime(2022, 12, 1, tzinfo=timezone.utc))
    assert entry.target_path == Path("/uploads/2020/05/a.jpg")


def test_build_entry_requires_capture_timestamp() -> None:
    candidate = Candidate(path=Path("/drop/x.jpg"), filename="x.jpg", mime_type="image/jpeg")
    metadata = MetadataRecord(modified_timestamp=BASE)
    with pytest.raises(ValueError):
        build_entry(Path("/uploads"), candidate, metadata, size_bytes=1)


def test_plan_orders_oldest_first_and_truncates() -> None:
    entries = [
        _entry("new.jpg", BASE + timedelta(days=3)),
        _entry("old.jpg", BASE),
        _entry("mid.jpg", BASE + timedelta(days=1)),
    ]

    planned = plan_batch(entries, 2)

    assert [e.candidate.filename for e in planned] == ["old.jpg", "mid.jpg"]


def test_equal_timestamps_keep_discovery_order() -> None:
    entries = [
        _entry("b.jpg", BASE + timedelta(hours=1)),
        _entry("c.jpg", BASE),
        _entry("a.jpg", BASE),
        _entry("d.jpg", BASE),
    ]

    planned = plan_batch(entries, 10)

    assert [e.candidate.filename for e in planned] == ["c.jpg", "a.jpg", "d.jpg", "b.jpg"]


def test_zero_batch_size_plans_nothing() -> None:
    entries = [_entry("a.jpg", BASE)]
    assert plan_batch(entries, 0) == []


def test_plan_of_empty_input_is_empty() -> None:
    assert plan_batch([], 5) == []
