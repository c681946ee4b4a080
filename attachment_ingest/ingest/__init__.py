"""Ingest pipeline: scan a drop folder, read metadata, move and record images."""

from .exif_reader import check_eligibility, read_metadata
from .pipeline import check_folder, preview_folder, resolve_source_folder
from .planner import build_target_path, plan_batch
from .relocator import relocate
from .scanner import normalize_filename, scan_candidates

__all__ = [
    "build_target_path",
    "check_eligibility",
    "check_folder",
    "normalize_filename",
    "plan_batch",
    "preview_folder",
    "read_metadata",
    "relocate",
    "resolve_source_folder",
    "scan_candidates",
]
