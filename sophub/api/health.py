# sophub/api/health.py
import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sophub.core.auth import get_db
from sophub.core.errors import upstream_message
from sophub.core.timeutils import iso, utcnow

router = APIRouter(tags=["health"])

NO_STORE = {"Cache-Control": "no-store"}


@router.get("/healthz")
def healthz() -> dict:
    # liveness: 200 while the process is up
    return {"ok": True, "service": "sophub", "status": "healthy", "ts": iso(utcnow())}


@router.get("/readyz")
def readyz(db: Session = Depends(get_db)):
    t0 = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "db": "down", "error": upstream_message(e)},
            headers=NO_STORE,
        )
    latency_ms = (time.perf_counter() - t0) * 1000.0
    return JSONResponse(
        status_code=200,
        content={"ok": True, "db": "up", "db_latency_ms": round(latency_ms, 2)},
        headers=NO_STORE,
    )
