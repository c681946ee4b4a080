from __future__ import annotations

import logging
import mimetypes
import os
import re
from pathlib import Path
from typing import Iterable, Iterator, Optional

from PIL import Image

from attachment_ingest.core.config import DEFAULT_ALLOWED_MIME_TYPES
from attachment_ingest.core.events import EventKind, EventSink, emit
from attachment_ingest.core.models import Candidate

logger = logging.getLogger(__name__)

OS_ARTIFACT_NAMES = {".DS_Store", "Thumbs.db", "desktop.ini"}
OS_ARTIFACT_PREFIXES = ("._",)  # AppleDouble resource forks

_WHITESPACE = re.compile(r"\s")

# Older mimetypes tables report legacy names for some formats.
MIME_ALIASES = {"image/x-ms-bmp": "image/bmp", "image/pjpeg": "image/jpeg"}


def is_os_artifact(name: str) -> bool:
    return name in OS_ARTIFACT_NAMES or name.startswith(OS_ARTIFACT_PREFIXES)


def detect_mime_type(path: Path) -> Optional[str]:
    """Guess the MIME type from the extension, probing the content when unknown."""
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed:
        return MIME_ALIASES.get(guessed, guessed)
    try:
        with Image.open(path) as img:
            return img.get_format_mimetype()
    except Exception:
        return None


def scan_candidates(
    root: str | Path,
    sink: EventSink,
    allowed_mime_types: Iterable[str] = DEFAULT_ALLOWED_MIME_TYPES,
) -> Iterator[Candidate]:
    """Yield candidate images under root, deepest directories first."""
    root_path = Path(root)
    if not root_path.is_dir():
        return
    allowed = set(allowed_mime_types)
    for dirpath, _dirnames, filenames in os.walk(root_path, topdown=False):
        for name in sorted(filenames):
            if is_os_artifact(name):
                continue
            path = Path(dirpath) / name
            if not path.is_file():
                continue
            mime_type = detect_mime_type(path)
            if mime_type not in allowed:
                emit(
                    sink,
                    EventKind.FILETYPE_NOT_ALLOWED,
                    path,
                    mime_type=mime_type,
                    allowed=sorted(allowed),
                )
                continue
            yield Candidate(path=path, filename=name, mime_type=mime_type)


def normalize_filename(path: Path, sink: EventSink) -> Path:
    """Rename a file in place so its name has no whitespace.

    The rename cannot be undone. If it fails the original path is returned and
    processing continues with the unchanged name.
    """
    clean_name = _WHITESPACE.sub("_", path.name)
    if clean_name == path.name:
        return path
    target = path.with_name(clean_name)
    try:
        path.rename(target)
    except OSError as exc:
        logger.warning("Could not rename %s: %s", path, exc)
        emit(sink, EventKind.RENAME_FAILED, path, target=str(target), error=str(exc))
        return path
    emit(sink, EventKind.FILENAME_NORMALIZED, target, original=str(path))
    return target
