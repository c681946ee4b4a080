from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def format_decimal(value: float) -> str:
    """Render a coordinate in its shortest form, dropping a trailing '.0'."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


class Candidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    filename: str
    mime_type: str


class GpsCoordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float

    @property
    def location(self) -> str:
        return f"{format_decimal(self.latitude)},{format_decimal(self.longitude)}"


class MetadataRecord(BaseModel):
    """Normalized EXIF + IPTC metadata for one candidate file."""

    model_config = ConfigDict(frozen=True)

    capture_timestamp: Optional[datetime] = None
    modified_timestamp: datetime
    gps: Optional[GpsCoordinates] = None
    camera_make: str = ""
    camera_model: str = ""

    # IPTC application record (2:xx)
    title: str = ""
    urgency: str = ""
    category: str = ""
    supplemental_category: str = ""
    keywords: list[str] = Field(default_factory=list)
    special_instructions: str = ""
    creation_date: str = ""
    byline: str = ""
    byline_title: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    transmission_reference: str = ""
    headline: str = ""
    credit: str = ""
    source: str = ""
    caption: str = ""


class BatchEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    metadata: MetadataRecord
    size_bytes: int
    target_path: Path


class Rejection(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    reason: str
    size_bytes: Optional[int] = None


class RelocationResult(BaseModel):
    ok: bool
    source_path: Path
    target_path: Path
    reason: Optional[str] = None


class InstructionAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class RecordFields(BaseModel):
    author_id: int
    title: str = ""
    content: str = ""
    excerpt: str = ""
    mime_type: str = ""
    slug: str = ""
    tags: list[str] = Field(default_factory=list)


class RecordInstruction(BaseModel):
    """What the store should do for one relocated file."""

    action: InstructionAction
    record_id: Optional[int] = None
    file_path: Path
    fields: Optional[RecordFields] = None
    regenerate_derivatives: bool = True
    alt_text: str = ""
    attributes: dict[str, str | float] = Field(default_factory=dict)


class ReconcileResult(BaseModel):
    ok: bool = True
    record_id: Optional[int] = None
    action: InstructionAction
    alt_text_set: bool = False
    reason: Optional[str] = None


class StoredRecord(BaseModel):
    id: int
    file: str
    variant_files: list[str] = Field(default_factory=list)


class RunStatus(str, Enum):
    CONFIG_ERROR = "config_error"
    NO_FILES = "no_files"
    NO_VALID_ENTRIES = "no_valid_entries"
    FINISHED = "finished"


class RunSummary(BaseModel):
    status: RunStatus
    discovered: int = 0
    eligible: int = 0
    planned: int = 0
    processed: int = 0
    rejections: list[Rejection] = Field(default_factory=list)
    record_ids: list[int] = Field(default_factory=list)


class PendingFile(BaseModel):
    """Preview row for a file still waiting in the source folder."""

    path: Path
    filename: str
    title: str = ""
    keywords: list[str] = Field(default_factory=list)
    location: Optional[str] = None
    camera: str = "Unknown"
    capture_timestamp: Optional[datetime] = None


class ManagedRecord(BaseModel):
    """A stored media record as seen from outside the store."""

    id: int
    author_id: int
    title: str = ""
    content: str = ""
    excerpt: str = ""
    mime_type: str = ""
    slug: str = ""
    file: str
    width: Optional[int] = None
    height: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    variants: dict[str, str] = Field(default_factory=dict)
    attributes: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
