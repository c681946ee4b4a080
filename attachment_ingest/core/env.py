from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

NOISY_LOGGERS = ("PIL", "sqlalchemy.engine", "multipart")


def load_dotenv_if_present(path: Optional[str | Path] = None) -> None:
    """Load settings from ``ATTACHMENT_INGEST_ENV`` or ``./.env`` when the file exists.

    Variables already set in the process environment win.
    """
    dotenv_path = Path(path or os.getenv("ATTACHMENT_INGEST_ENV", ".env"))
    if dotenv_path.is_file():
        load_dotenv(dotenv_path=dotenv_path, override=False)


def configure_logging(default_level: str = "INFO", quiet: Iterable[str] = NOISY_LOGGERS) -> None:
    """Set up root logging from LOG_LEVEL and keep chatty libraries at WARNING."""
    level_name = os.getenv("LOG_LEVEL", default_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
