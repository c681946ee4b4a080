from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/gif",
    "image/png",
    "image/bmp",
    "image/tiff",
)

_TRUTHY = {"1", "true", "yes", "on"}


class IngestConfig(BaseModel):
    """Settings for one ingest run. Built once and passed to every stage."""

    model_config = ConfigDict(frozen=True)

    uploads_root: Path
    source_folder: str = ""
    author_id: int = 0
    files_per_batch: int = Field(default=10, ge=0)
    no_overwrite_title_description: bool = False
    allowed_mime_types: tuple[str, ...] = DEFAULT_ALLOWED_MIME_TYPES
    interval_seconds: int = Field(default=60, gt=0)

    @property
    def source_path(self) -> Path:
        return self.uploads_root / self.source_folder.strip("/")

    def problems(self) -> list[str]:
        """Return the names of missing settings that disable a run."""
        missing: list[str] = []
        if not self.source_folder.strip():
            missing.append("source_folder")
        if not self.author_id:
            missing.append("author_id")
        return missing

    @classmethod
    def from_env(cls, uploads_root: Optional[Path] = None) -> "IngestConfig":
        root = uploads_root or Path(os.getenv("UPLOADS_ROOT", "./uploads"))
        allowed_raw = os.getenv("ALLOWED_MIME_TYPES", "")
        allowed = tuple(t.strip() for t in allowed_raw.split(",") if t.strip())
        return cls(
            uploads_root=root,
            source_folder=os.getenv("SOURCE_FOLDER", ""),
            author_id=int(os.getenv("AUTHOR_ID", "0") or 0),
            files_per_batch=int(os.getenv("FILES_PER_BATCH", "10")),
            no_overwrite_title_description=os.getenv(
                "NO_OVERWRITE_TITLE_DESCRIPTION", "0"
            ).lower()
            in _TRUTHY,
            allowed_mime_types=allowed or DEFAULT_ALLOWED_MIME_TYPES,
            interval_seconds=int(os.getenv("CHECK_INTERVAL_SECONDS", "60")),
        )
