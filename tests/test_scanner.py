from __future__ import annotations

from pathlib import Path

from PIL import Image

from attachment_ingest.core.events import EventKind, MemoryEventSink
from attachment_ingest.ingest.scanner import (
    detect_mime_type,
    is_os_artifact,
    normalize_filename,
    scan_candidates,
)


def _image(path: Path, fmt: str = "JPEG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (4, 4), color="green").save(path, format=fmt)
    return path


def test_scan_skips_artifacts_and_reports_disallowed_types(tmp_path: Path) -> None:
    _image(tmp_path / "a.jpg")
    _image(tmp_path / "b.png", fmt="PNG")
    (tmp_path / "notes.txt").write_text("skip me")
    (tmp_path / ".DS_Store").write_bytes(b"\x00\x00")
    (tmp_path / "._a.jpg").write_bytes(b"\x00\x05")
    sink = MemoryEventSink()

    candidates = list(scan_candidates(tmp_path, sink))

    assert [c.filename for c in candidates] == ["a.jpg", "b.png"]
    assert [c.mime_type for c in candidates] == ["image/jpeg", "image/png"]
    rejected = sink.of_kind(EventKind.FILETYPE_NOT_ALLOWED)
    assert [event.path.name for event in rejected] == ["notes.txt"]
    assert rejected[0].payload["mime_type"] == "text/plain"


def test_scan_visits_deepest_directories_first(tmp_path: Path) -> None:
    _image(tmp_path / "top.jpg")
    _image(tmp_path / "one" / "middle.jpg")
    _image(tmp_path / "one" / "two" / "deep.jpg")

    names = [c.filename for c in scan_candidates(tmp_path, MemoryEventSink())]

    assert names == ["deep.jpg", "middle.jpg", "top.jpg"]


def test_scan_respects_custom_allow_list(tmp_path: Path) -> None:
    _image(tmp_path / "a.jpg")
    _image(tmp_path / "b.png", fmt="PNG")
    sink = MemoryEventSink()

    names = [c.filename for c in scan_candidates(tmp_path, sink, ["image/png"])]

    assert names == ["b.png"]
    assert len(sink.of_kind(EventKind.FILETYPE_NOT_ALLOWED)) == 1


def test_scan_of_missing_or_empty_root_is_empty(tmp_path: Path) -> None:
    assert list(scan_candidates(tmp_path / "missing", MemoryEventSink())) == []
    assert list(scan_candidates(tmp_path, MemoryEventSink())) == []


def test_mime_type_is_read_from_content_when_extension_is_unknown(tmp_path: Path) -> None:
    path = _image(tmp_path / "upload.noext", fmt="PNG")
    assert detect_mime_type(path) == "image/png"
    assert detect_mime_type(_image(tmp_path / "x.bmp", fmt="BMP")) == "image/bmp"


def test_os_artifacts() -> None:
    assert is_os_artifact(".DS_Store")
    assert is_os_artifact("._IMG_0001.JPG")
    assert is_os_artifact("Thumbs.db")
    assert not is_os_artifact("IMG_0001.JPG")


def test_normalize_filename_replaces_whitespace(tmp_path: Path) -> None:
    original = _image(tmp_path / "my holiday\tphoto.jpg")
    sink = MemoryEventSink()

    renamed = normalize_filename(original, sink)

    assert renamed.name == "my_holiday_photo.jpg"
    assert renamed.exists()
    assert not original.exists()
    assert sink.kinds() == [EventKind.FILENAME_NORMALIZED]


def test_normalize_filename_leaves_clean_names(tmp_path: Path) -> None:
    path = _image(tmp_path / "clean.jpg")
    sink = MemoryEventSink()
    assert normalize_filename(path, sink) == path
    assert sink.events == []


def test_failed_rename_keeps_original_path(tmp_path: Path, monkeypatch) -> None:
    original = _image(tmp_path / "with space.jpg")
    sink = MemoryEventSink()

    def _refuse(self, target):
        raise PermissionError("read-only")

    monkeypatch.setattr(Path, "rename", _refuse)

    assert normalize_filename(original, sink) == original
    assert original.exists()
    assert sink.kinds() == [EventKind.RENAME_FAILED]
