"""
Site Schedule FastAPI application.

Serves schedule analytics to dashboards; the engine itself is pure and synchronous.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from site_schedule.api.v1.schedule import router as schedule_router
from site_schedule.config import get_settings

settings = get_settings()

# Ensure site_schedule loggers show in uvicorn output
_app_log = logging.getLogger("site_schedule")
_app_log.setLevel(settings.log_level)
if not _app_log.handlers:
    _h = logging.StreamHandler()
    _h.setLevel(settings.log_level)
    _h.setFormatter(logging.Formatter("%(levelname)s:     %(name)s: %(message)s"))
    _app_log.addHandler(_h)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    _app_log.info(
        "site_schedule: starting (critical path %s, size %s)",
        settings.default_critical_path_method,
        settings.critical_path_size,
    )
    yield


app = FastAPI(
    title="Site Schedule API",
    description="Schedule status, float and critical path analytics for construction projects",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Ensure error responses include proper JSON and CORS headers."""
    _app_log.exception("site_schedule: unhandled error on %s", request.url.path)
    origin = request.headers.get("origin", "*")
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__},
        headers={
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "*",
        },
    )


if settings.cors_allow_all:
    origins: list[str] = ["*"]
    credentials = False
else:
    origins = list(settings.cors_origins_list)
    credentials = True

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(schedule_router, prefix="/api/v1/schedule", tags=["schedule"])


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "service": "site-schedule"}
