#!/usr/bin/env python
"""
Run the folder ingest once, or repeatedly on a fixed interval.

Usage:
  python scripts/check_folder.py
  python scripts/check_folder.py --watch
  UPLOADS_ROOT=/srv/uploads SOURCE_FOLDER=ftp AUTHOR_ID=1 python scripts/check_folder.py
"""
from __future__ import annotations

import argparse
import logging
import os
import time
from pathlib import Path

from attachment_ingest.core.config import IngestConfig
from attachment_ingest.core.env import configure_logging, load_dotenv_if_present
from attachment_ingest.core.events import FanoutEventSink, LogFileEventSink, LoggingEventSink
from attachment_ingest.ingest import check_folder
from attachment_ingest.store import SqlMediaStore, init_db, session_factory

logger = logging.getLogger("check_folder")


def main() -> None:
    parser = argparse.ArgumentParser(description="Ingest images dropped into the source folder.")
    parser.add_argument("--uploads-root", type=Path, default=None, help="Uploads root directory")
    parser.add_argument("--watch", action="store_true", help="Repeat every CHECK_INTERVAL_SECONDS")
    parser.add_argument(
        "--log-dir", type=Path, default=None, help="error/success log directory (EVENT_LOG_DIR)"
    )
    args = parser.parse_args()

    load_dotenv_if_present()
    configure_logging()
    config = IngestConfig.from_env(uploads_root=args.uploads_root)
    database_url = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./attachment_ingest.db")
    engine = init_db(database_url)
    SessionLocal = session_factory(engine)

    sink = LoggingEventSink()
    log_dir = args.log_dir or os.getenv("EVENT_LOG_DIR")
    if log_dir:
        sink = FanoutEventSink(sink, LogFileEventSink(Path(log_dir)))

    while True:
        with SessionLocal() as session:
            summary = check_folder(config, SqlMediaStore(session), sink)
        print(
            f"Run {summary.status.value}: {summary.processed} of {summary.planned} planned "
            f"files processed ({summary.discovered} found, {len(summary.rejections)} rejected)"
        )
        if not args.watch:
            break
        try:
            time.sleep(config.interval_seconds)
        except KeyboardInterrupt:
            logger.info("Stopped")
            break


if __name__ == "__main__":
    main()
