# sophub/main.py
from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

# ---------------------------
# Env loading (root .env first, then sophub/.env as fallback)
# ---------------------------
load_dotenv(find_dotenv(usecwd=True))
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from sophub.core.errors import register_exception_handlers  # noqa: E402
from sophub.db.session import engine  # noqa: E402
from sophub.middleware.request_logging import RequestLoggingMiddleware  # noqa: E402
from sophub.models import Base  # noqa: E402  (registers every table)
from sophub.services.events import change_feed  # noqa: E402
from sophub.worker.scheduler import make_scheduler  # noqa: E402

from sophub.api import health  # noqa: E402
from sophub.api.v1 import (  # noqa: E402
    assignments,
    audit_logs,
    auth,
    companies,
    dashboard,
    history,
    notifications,
    passwords,
    reports,
    sops,
    users,
)

log = logging.getLogger("sophub")

# ---------------------------
# CREATE TABLES (dev-only; migrations are the production path)
# ---------------------------
if os.getenv("ENABLE_CREATE_ALL", "1") == "1":
    Base.metadata.create_all(bind=engine)

# ---------------------------
# APP
# ---------------------------
app = FastAPI(title="SOP Hub")
app.state.change_feed = change_feed

register_exception_handlers(app)
app.add_middleware(RequestLoggingMiddleware)

# ---------------------------
# ROUTER MOUNT
# ---------------------------
for _router in (
    auth.router,
    passwords.router,
    users.router,
    companies.router,
    sops.router,
    assignments.router,
    history.router,
    notifications.router,
    reports.router,
    dashboard.router,
    audit_logs.router,
):
    app.include_router(_router, prefix="/api/v1")
app.include_router(health.router, prefix="/api")


# ---------------------------
# Scheduler (daily reminders)
# ---------------------------
@app.on_event("startup")
def _start_scheduler():
    # ENABLE_SCHEDULER=0 turns the daily job off (tests, extra API workers)
    app.state.scheduler = None
    if os.getenv("ENABLE_SCHEDULER", "1") != "1":
        return
    app.state.scheduler = make_scheduler()
    app.state.scheduler.start()
    log.info("scheduler started")


@app.on_event("shutdown")
def _stop_scheduler():
    sched = getattr(app.state, "scheduler", None)
    if sched:
        sched.shutdown(wait=False)


# ---------------------------
# OpenAPI (bearer login flow, unique operationIds)
# ---------------------------
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    schema = get_openapi(
        title="SOP Hub",
        version="1.0.0",
        description="Document acknowledgment, compliance tracking and reporting API",
        routes=app.routes,
    )
    schema.setdefault("components", {}).setdefault("securitySchemes", {})
    schema["components"]["securitySchemes"]["OAuth2PasswordBearer"] = {
        "type": "oauth2",
        "flows": {"password": {"tokenUrl": "/api/v1/login", "scopes": {}}},
    }

    seen = set()
    for path, methods in schema.get("paths", {}).items():
        for method, operation in methods.items():
            op_id = operation.get("operationId")
            if not op_id:
                continue
            if op_id in seen:
                suffix = "".join(ch for ch in path.replace("/", "_") if ch.isalnum() or ch in "_-")
                op_id = f"{op_id}_{method.lower()}{suffix}"
                operation["operationId"] = op_id
            seen.add(op_id)

    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = custom_openapi
