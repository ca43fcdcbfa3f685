from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from honeypos.config import settings
from honeypos.db import Base, SessionLocal, engine
from honeypos.deps import get_db
from honeypos.errors import ServiceError
from honeypos.logging_setup import configure_logging
from honeypos.routes import auth, catalog, line, materials, orders, pos, reports
from honeypos.seed import seed_database

logger = logging.getLogger(__name__)

__all__ = ["app", "get_db"]


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level, settings.log_path)
    if settings.create_tables_on_startup:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")
    if settings.seed_on_startup:
        db = SessionLocal()
        try:
            seed_database(db)
        finally:
            db.close()
    logger.info("HoneyPOS API started")
    yield
    logger.info("HoneyPOS API stopped")


app = FastAPI(title="HoneyPOS", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "internal server error"})


@app.get("/", tags=["root"])
def read_root() -> dict:
    return {"status": "ok"}


@app.get("/api/health", tags=["health"])
def health_check() -> dict:
    return {"status": "healthy"}


app.include_router(auth.router)
app.include_router(pos.router)
app.include_router(orders.router)
app.include_router(catalog.router)
app.include_router(materials.router)
app.include_router(reports.router)
app.include_router(line.router)
app.include_router(line.webhook_router)
