from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from asset_inventory.api.routers import admin, assets, identity, media, reference
from asset_inventory.infra.audit import AuditMiddleware
from asset_inventory.infra.db import check_db_ready, create_schema
from asset_inventory.infra.logging_setup import configure_logging

AUTO_CREATE_SCHEMA = os.getenv("AUTO_CREATE_SCHEMA", "1") == "1"


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    configure_logging("api")
    if AUTO_CREATE_SCHEMA:
        create_schema()
    yield


app = FastAPI(
    title="asset-inventory",
    description="Asset inventory with lifecycle tracking history and warranty registration.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(AuditMiddleware)

app.include_router(identity.router, prefix="/api/identity", tags=["identity"])
app.include_router(reference.departments_router, prefix="/api/departments", tags=["reference"])
app.include_router(reference.categories_router, prefix="/api/categories", tags=["reference"])
app.include_router(assets.router, prefix="/api/assets", tags=["assets"])
app.include_router(assets.tracking_router, prefix="/api/tracking", tags=["tracking"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(media.router, prefix="/media", tags=["media"])


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
