from __future__ import annotations

import struct
from pathlib import Path
from typing import Callable, Optional

import pytest
from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from attachment_ingest.store import init_db, session_factory


def _iptc_segment(fields: dict[tuple[int, int], bytes | list[bytes]]) -> bytes:
    """Build a JPEG APP13 segment carrying an IPTC-NAA record."""
    data = b""
    for (record, dataset), values in fields.items():
        if isinstance(values, bytes):
            values = [values]
        for value in values:
            data += bytes([0x1C, record, dataset]) + struct.pack(">H", len(value)) + value
    resource = b"8BIM" + struct.pack(">H", 0x0404) + b"\x00\x00" + struct.pack(">I", len(data))
    resource += data
    if len(data) % 2:
        resource += b"\x00"
    payload = b"Photoshop 3.0\x00" + resource
    return b"\xff\xed" + struct.pack(">H", len(payload) + 2) + payload


def gps_block(
    lat: tuple[int, int, int], lat_ref: str, lon: tuple[int, int, int], lon_ref: str
) -> dict:
    """GPS IFD with whole-number degree/minute/second rationals."""
    return {
        1: lat_ref,
        2: tuple(IFDRational(v, 1) for v in lat),
        3: lon_ref,
        4: tuple(IFDRational(v, 1) for v in lon),
    }


def write_photo(
    path: Path,
    *,
    captured: Optional[str] = "2021:01:02 03:04:05",
    modified: Optional[str] = None,
    gps: Optional[dict] = None,
    iptc: Optional[dict] = None,
    size: tuple[int, int] = (10, 10),
    make: Optional[str] = None,
    model: Optional[str] = None,
) -> Path:
    img = Image.new("RGB", size, color="red")
    exif = Image.Exif()
    if captured:
        exif[36867] = captured
    if modified or captured:
        exif[306] = modified or captured
    if make:
        exif[271] = make
    if model:
        exif[272] = model
    if gps:
        exif[34853] = gps
    path.parent.mkdir(parents=True, exist_ok=True)
    if len(exif):
        img.save(path, format="JPEG", exif=exif)
    else:
        img.save(path, format="JPEG")
    if iptc:
        raw = path.read_bytes()
        path.write_bytes(raw[:2] + _iptc_segment(iptc) + raw[2:])
    return path


@pytest.fixture
def make_photo() -> Callable[..., Path]:
    return write_photo


@pytest.fixture
def make_gps() -> Callable[..., dict]:
    return gps_block


@pytest.fixture
def session():
    engine = init_db("sqlite+pysqlite:///:memory:")
    SessionLocal = session_factory(engine)
    with SessionLocal() as session:
        yield session
