from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_SIZES: dict[str, int] = {"thumbnail": 150, "medium": 300, "large": 1024}


@dataclass
class SizeVariant:
    name: str
    path: Path
    width: int
    height: int


def build_size_variants(
    image_path: Path, sizes: Mapping[str, int] = DEFAULT_SIZES
) -> tuple[Optional[tuple[int, int]], list[SizeVariant]]:
    """Write resized copies beside the original as ``<stem>-<w>x<h><ext>``.

    Returns the original dimensions and the variants written. Sizes that would
    not shrink the original are skipped. On an unreadable image nothing is
    written and ``(None, [])`` is returned.
    """
    variants: list[SizeVariant] = []
    try:
        with Image.open(image_path) as img:
            original_size = img.size
            for name, max_size in sizes.items():
                if img.width <= max_size and img.height <= max_size:
                    continue
                resized = img.copy()
                resized.thumbnail((max_size, max_size))
                if image_path.suffix.lower() in {".jpg", ".jpeg", ".jpe"} and resized.mode not in (
                    "RGB",
                    "L",
                ):
                    resized = resized.convert("RGB")
                width, height = resized.size
                variant_path = image_path.with_name(
                    f"{image_path.stem}-{width}x{height}{image_path.suffix}"
                )
                resized.save(variant_path)
                variants.append(SizeVariant(name, variant_path, width, height))
    except Exception:
        logger.warning("Could not build size variants for %s", image_path, exc_info=True)
        return None, []
    return original_size, variants
