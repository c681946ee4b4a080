import os
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from attachment_ingest.core.config import IngestConfig
from attachment_ingest.core.env import configure_logging, load_dotenv_if_present
from attachment_ingest.core.events import FanoutEventSink, LogFileEventSink, LoggingEventSink
from attachment_ingest.ingest import check_folder, preview_folder
from attachment_ingest.store import (
    SqlMediaStore,
    init_db,
    list_managed_records,
    load_managed_record,
    session_factory,
)

app = FastAPI(title="Attachment Ingest API")

load_dotenv_if_present()
configure_logging()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./attachment_ingest.db")
engine = init_db(DATABASE_URL)
SessionLocal = session_factory(engine)
EVENT_LOG_DIR = os.getenv("EVENT_LOG_DIR")


def get_session() -> Session:
    with SessionLocal() as session:
        yield session


def get_config() -> IngestConfig:
    return IngestConfig.from_env()


def _event_sink():
    if EVENT_LOG_DIR:
        return FanoutEventSink(LoggingEventSink(), LogFileEventSink(Path(EVENT_LOG_DIR)))
    return LoggingEventSink()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/pending")
def pending(config: IngestConfig = Depends(get_config)) -> dict:
    """Files in the source folder that the next runs will pick up."""
    if config.problems():
        raise HTTPException(status_code=409, detail=f"Missing settings: {config.problems()}")
    files = preview_folder(config)
    return {"files": [item.model_dump(mode="json") for item in files]}


@app.post("/runs")
def run_once(
    session: Session = Depends(get_session), config: IngestConfig = Depends(get_config)
) -> dict:
    summary = check_folder(config, SqlMediaStore(session), _event_sink())
    return {"run": summary.model_dump(mode="json")}


@app.get("/records")
def records(limit: int = 100, offset: int = 0, session: Session = Depends(get_session)) -> dict:
    items = list_managed_records(session, limit=limit, offset=offset)
    return {"records": [item.model_dump(mode="json") for item in items]}


@app.get("/records/{record_id}")
def record(record_id: int, session: Session = Depends(get_session)) -> dict:
    item = load_managed_record(session, record_id)
    if not item:
        raise HTTPException(status_code=404, detail="Record not found")
    return {"record": item.model_dump(mode="json")}
