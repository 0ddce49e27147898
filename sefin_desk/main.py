from __future__ import annotations

from fastapi import FastAPI, HTTPException

from sefin_desk.api.routers import signing
from sefin_desk.infra import db
from sefin_desk.infra.events import event_bus
from sefin_desk.infra.logging_config import configure_logging

configure_logging()
event_bus.bind_engine(db.get_engine())

app = FastAPI(
    title="sefin-desk",
    description="Finance signing desk: approval queue, risk scoring and process routing.",
    version="0.1.0",
)

app.include_router(signing.router, prefix="/api/sefin", tags=["sefin"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = db.check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
