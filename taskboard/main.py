from __future__ import annotations

from fastapi import FastAPI, HTTPException

from taskboard.api.routers import assignment, content, identity, tasks, volunteers
from taskboard.infra.audit import AuditMiddleware
from taskboard.infra.db import AUTO_CREATE_SCHEMA, check_db_ready, create_schema
from taskboard.infra.log import configure_logging

configure_logging()

if AUTO_CREATE_SCHEMA:
    create_schema()

app = FastAPI(
    title="taskboard",
    description="Editorial task board with skill-based volunteer assignment.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(identity.router, prefix="/api/identity", tags=["identity"])
app.include_router(content.router, prefix="/api/content", tags=["content"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(volunteers.router, prefix="/api/volunteers", tags=["volunteers"])
app.include_router(assignment.router, prefix="/api/assignment", tags=["assignment"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
