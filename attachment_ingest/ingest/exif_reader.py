from __future__ import annotations

import logging
import numbers
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from PIL import Image, IptcImagePlugin

from attachment_ingest.core.models import GpsCoordinates, MetadataRecord, Rejection

logger = logging.getLogger(__name__)

DATETIME_ORIGINAL_TAG = 36867  # EXIF DateTimeOriginal
DATETIME_DIGITIZED_TAG = 36868  # EXIF DateTimeDigitized
DATETIME_TAG = 306  # IFD0 DateTime, last modification
MAKE_TAG = 271
MODEL_TAG = 272
EXIF_IFD_TAG = 34665
GPS_INFO_TAG = 34853

GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4

# Files above this size are not ingested.
MAX_FILE_BYTES = 10 * 1024 * 1024

REASON_NO_FILE_DATE = "no file date"
REASON_TOO_BIG = "too big"

IPTC_CONTAINERS = {"JPEG", "TIFF"}
IPTC_KEYWORDS = (2, 25)
IPTC_FIELDS = {
    (2, 5): "title",
    (2, 10): "urgency",
    (2, 15): "category",
    (2, 20): "supplemental_category",
    (2, 40): "special_instructions",
    (2, 55): "creation_date",
    (2, 80): "byline",
    (2, 85): "byline_title",
    (2, 90): "city",
    (2, 95): "state",
    (2, 101): "country",
    (2, 103): "transmission_reference",
    (2, 105): "headline",
    (2, 110): "credit",
    (2, 115): "source",
    (2, 120): "caption",
}


def rational_quotient(value: object) -> Optional[float]:
    """Return numerator/denominator of an EXIF rational, 0.0 for a zero denominator."""
    if isinstance(value, (tuple, list)) and len(value) == 2:
        numerator, denominator = value
    elif hasattr(value, "numerator") and hasattr(value, "denominator"):
        numerator, denominator = value.numerator, value.denominator  # type: ignore[union-attr]
    elif isinstance(value, numbers.Real):
        return float(value)
    else:
        return None
    try:
        numerator = float(numerator)
        denominator = float(denominator)
    except (TypeError, ValueError):
        return None
    if denominator == 0:
        return 0.0
    return numerator / denominator


def dms_to_decimal(degrees: float, minutes: float, seconds: float) -> float:
    return degrees + ((minutes * 60) + seconds) / 3600


def _ref_letter(ref: object) -> str:
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if ref is None:
        return ""
    return str(ref).strip("\x00 ").upper()


def convert_gps_coordinate(values: object, ref: object, negative_ref: str) -> Optional[float]:
    """Convert a (deg, min, sec) rational triple to signed decimal degrees."""
    if not isinstance(values, (tuple, list)) or len(values) != 3:
        return None
    parts = [rational_quotient(v) for v in values]
    if any(p is None for p in parts):
        return None
    degrees, minutes, seconds = parts  # type: ignore[misc]
    coordinate = dms_to_decimal(degrees, minutes, seconds)
    if _ref_letter(ref) == negative_ref:
        coordinate = 0 - coordinate
    return coordinate


def read_gps(gps_info: dict[int, Any] | None) -> Optional[GpsCoordinates]:
    """Both latitude and longitude are required; partial GPS data is dropped."""
    if not gps_info:
        return None
    latitude = convert_gps_coordinate(
        gps_info.get(GPS_LATITUDE), gps_info.get(GPS_LATITUDE_REF), "S"
    )
    longitude = convert_gps_coordinate(
        gps_info.get(GPS_LONGITUDE), gps_info.get(GPS_LONGITUDE_REF), "W"
    )
    if latitude is None or longitude is None:
        return None
    return GpsCoordinates(latitude=latitude, longitude=longitude)


def format_location(gps: Optional[GpsCoordinates]) -> Optional[str]:
    return gps.location if gps else None


def _parse_exif_datetime(value: object) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    try:
        return datetime.strptime(str(value).strip("\x00 "), "%Y:%m:%d %H:%M:%S").replace(
            tzinfo=timezone.utc
        )
    except ValueError:
        return None


def _decode_text(value: object) -> str:
    if isinstance(value, bytes):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            value = value.decode("latin-1")
    return str(value).strip("\x00 ")


def _first(value: object) -> object:
    if isinstance(value, list):
        return value[0] if value else ""
    return value


def read_iptc(img: Image.Image) -> dict[str, Any]:
    """Map the IPTC application record of an open image to MetadataRecord fields."""
    try:
        info = IptcImagePlugin.getiptcinfo(img) or {}
    except Exception:
        logger.debug("Unreadable IPTC block in %s", getattr(img, "filename", "?"))
        return {}

    fields: dict[str, Any] = {}
    for dataset, name in IPTC_FIELDS.items():
        if dataset in info:
            fields[name] = _decode_text(_first(info[dataset]))
    keywords = info.get(IPTC_KEYWORDS)
    if keywords is not None:
        if not isinstance(keywords, list):
            keywords = [keywords]
        fields["keywords"] = [_decode_text(k) for k in keywords]
    return fields


def _get_ifd(exif: Image.Exif, tag: int) -> dict[int, Any]:
    try:
        ifd = exif.get_ifd(tag)
    except Exception:
        return {}
    return ifd if isinstance(ifd, dict) else {}


def _file_mtime(path: str | Path) -> datetime:
    return datetime.fromtimestamp(os.stat(path).st_mtime, tz=timezone.utc)


def read_metadata(path: str | Path) -> Optional[MetadataRecord]:
    """Extract EXIF and IPTC metadata, or None when the file has no EXIF block."""
    try:
        with Image.open(path) as img:
            exif = img.getexif()
            if not exif:
                return None

            exif_ifd = _get_ifd(exif, EXIF_IFD_TAG)
            capture = (
                _parse_exif_datetime(exif_ifd.get(DATETIME_ORIGINAL_TAG))
                or _parse_exif_datetime(exif.get(DATETIME_ORIGINAL_TAG))
                or _parse_exif_datetime(exif_ifd.get(DATETIME_DIGITIZED_TAG))
                or _parse_exif_datetime(exif.get(DATETIME_DIGITIZED_TAG))
            )
            modified = (
                _parse_exif_datetime(exif.get(DATETIME_TAG)) or capture or _file_mtime(path)
            )
            gps = read_gps(_get_ifd(exif, GPS_INFO_TAG))
            iptc = read_iptc(img) if img.format in IPTC_CONTAINERS else {}

            return MetadataRecord(
                capture_timestamp=capture,
                modified_timestamp=modified,
                gps=gps,
                camera_make=_decode_text(exif.get(MAKE_TAG) or ""),
                camera_model=_decode_text(exif.get(MODEL_TAG) or ""),
                **iptc,
            )
    except Exception:
        # Ingest should never fail because of malformed metadata.
        logger.debug("No usable metadata in %s", path, exc_info=True)
        return None


def check_eligibility(
    path: Path, metadata: Optional[MetadataRecord], size_bytes: int
) -> Optional[Rejection]:
    """Return the reason a file may not be ingested, or None when it may."""
    if metadata is None or metadata.capture_timestamp is None:
        return Rejection(path=path, reason=REASON_NO_FILE_DATE, size_bytes=size_bytes)
    if size_bytes > MAX_FILE_BYTES:
        return Rejection(path=path, reason=REASON_TOO_BIG, size_bytes=size_bytes)
    return None
