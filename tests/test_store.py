from __future__ import annotations

from pathlib import Path

from PIL import Image

from attachment_ingest.core.models import RecordFields
from attachment_ingest.store import (
    SqlMediaStore,
    list_managed_records,
    load_managed_record,
)
from attachment_ingest.store.derivatives import build_size_variants


def _image(path: Path, size: tuple[int, int]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color="orange").save(path)
    return path


def test_build_size_variants_skips_sizes_that_would_not_shrink(tmp_path: Path) -> None:
    path = _image(tmp_path / "photo.jpg", (400, 200))

    original, variants = build_size_variants(path)

    assert original == (400, 200)
    assert [(v.name, v.path.name) for v in variants] == [
        ("thumbnail", "photo-150x75.jpg"),
        ("medium", "photo-300x150.jpg"),
    ]
    assert all(v.path.exists() for v in variants)


def test_build_size_variants_on_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"not an image")
    assert build_size_variants(path) == (None, [])


def test_find_by_filename_fragment_matches_file_and_variants(tmp_path: Path, session) -> None:
    store = SqlMediaStore(session)
    first = _image(tmp_path / "2021/01/photo.jpg", (400, 200))
    other = store.create_record(RecordFields(author_id=1), tmp_path / "2021/01/other.jpg")
    record_id = store.create_record(RecordFields(author_id=1, title="Photo"), first)
    store.generate_derivatives(record_id, first)

    by_file = store.find_by_filename_fragment("photo.jpg")
    by_variant = store.find_by_filename_fragment("photo-150x75")

    assert [r.id for r in by_file] == [record_id]
    assert by_file[0].variant_files == ["photo-150x75.jpg", "photo-300x150.jpg"]
    assert [r.id for r in by_variant] == [record_id]
    assert [r.id for r in store.find_by_filename_fragment("other")] == [other]
    assert store.find_by_filename_fragment("missing") == []


def test_generate_derivatives_replaces_previous_variants(tmp_path: Path, session) -> None:
    store = SqlMediaStore(session)
    path = _image(tmp_path / "photo.jpg", (400, 200))
    record_id = store.create_record(RecordFields(author_id=1), path)

    meta = store.generate_derivatives(record_id, path)
    assert (meta["width"], meta["height"]) == (400, 200)
    assert sorted(meta["sizes"]) == ["medium", "thumbnail"]

    _image(path, (2000, 1000))
    meta = store.generate_derivatives(record_id, path)
    assert sorted(meta["sizes"]) == ["large", "medium", "thumbnail"]
    assert meta["sizes"]["large"]["file"] == "photo-1024x512.jpg"

    record = load_managed_record(session, record_id)
    assert record is not None
    assert (record.width, record.height) == (2000, 1000)
    assert record.variants == {
        "thumbnail": "photo-150x75.jpg",
        "medium": "photo-300x150.jpg",
        "large": "photo-1024x512.jpg",
    }


def test_update_record_replaces_fields_and_tags(tmp_path: Path, session) -> None:
    store = SqlMediaStore(session)
    record_id = store.create_record(
        RecordFields(author_id=1, title="Old", tags=["a", "b"]), tmp_path / "x.jpg"
    )

    store.update_record(record_id, RecordFields(author_id=2, title="New", tags=["c"]))

    record = load_managed_record(session, record_id)
    assert record is not None
    assert record.author_id == 2
    assert record.title == "New"
    assert record.tags == ["c"]


def test_attributes_round_trip_and_overwrite(tmp_path: Path, session) -> None:
    store = SqlMediaStore(session)
    record_id = store.create_record(RecordFields(author_id=1), tmp_path / "x.jpg")

    assert store.get_attribute(record_id, "image_alt") is None
    store.set_attribute(record_id, "image_alt", "first")
    store.set_attribute(record_id, "image_alt", "second")
    store.set_attribute(record_id, "geo_latitude", -10.0)

    assert store.get_attribute(record_id, "image_alt") == "second"
    assert store.get_attribute(record_id, "geo_latitude") == -10.0


def test_list_managed_records_newest_first(tmp_path: Path, session) -> None:
    store = SqlMediaStore(session)
    ids = [
        store.create_record(RecordFields(author_id=1, title=name), tmp_path / f"{name}.jpg")
        for name in ("a", "b", "c")
    ]
    store.set_attribute(ids[0], "location", "1,2")
    session.expire_all()

    records = list_managed_records(session)
    assert [r.id for r in records] == list(reversed(ids))
    assert records[-1].attributes == {"location": "1,2"}
    assert [r.id for r in list_managed_records(session, limit=1, offset=1)] == [ids[1]]
    assert load_managed_record(session, 999) is None
