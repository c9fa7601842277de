"""FastAPI entrypoint for the CCPQ Academy backend."""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.common.errors import AppError, PaymentProviderError
from app.features.admin.endpoints import router as admin_router
from app.features.content_generation.endpoints import router as content_router
from app.features.courses.endpoints import router as courses_router
from app.features.enrollments.endpoints import router as enrollments_router
from app.features.payments.endpoints import router as payments_router
from app.features.profiles.endpoints import router as profiles_router
from app.features.progress.endpoints import quiz_router, router as progress_router

_settings = get_settings()
logging.basicConfig(level=_settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title=_settings.app_name)
_START_TIME = datetime.now(timezone.utc)
logger = logging.getLogger("request")


# ------------------------
# CORS Setup
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------
# Custom Middlewares
# ------------------------
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID")
    req_id = incoming or str(uuid.uuid4())
    request.state.request_id = req_id
    logger.info("request.start", extra={"request_id": req_id, "path": request.url.path, "method": request.method})
    response = await call_next(request)
    response.headers["X-Request-Id"] = req_id
    logger.info("request.end", extra={"request_id": req_id, "path": request.url.path, "status_code": response.status_code})
    return response


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    t0 = perf_counter()
    resp = await call_next(request)
    dt = int((perf_counter() - t0) * 1000)
    logger.info("%s %s %dms %d", request.method, request.url.path, dt, resp.status_code)
    return resp


# ------------------------
# Error handlers
# ------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, PaymentProviderError):
        logger.error("payment_provider_error path=%s status=%s detail=%s",
                     request.url.path, exc.provider_status, exc.provider_detail)
    elif exc.status_code >= 500:
        logger.error("app_error path=%s %s: %s", request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s %s", request.url.path, type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ------------------------
# Routers
# ------------------------
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(payments_router)
app.include_router(progress_router)
app.include_router(quiz_router)
app.include_router(profiles_router)
app.include_router(admin_router)
app.include_router(content_router)


# ------------------------
# Meta endpoints
# ------------------------
@app.get("/", tags=["meta"], summary="API Root")
async def root():
    return {
        "name": _settings.app_name,
        "status": "ok",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/healthz"
    }


@app.get("/healthz", tags=["meta"], summary="Liveness / readiness probe")
async def healthz() -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    return {
        "status": "ok",
        "time_utc": now.isoformat(),
        "uptime_seconds": round((now - _START_TIME).total_seconds(), 2),
        "version": os.getenv("APP_VERSION", "dev"),
        "environment": "debug" if _settings.debug else "prod",
        "components": {
            "supabase": "configured" if _settings.supabase_url and _settings.supabase_key else "missing-config",
            "paypal": "configured" if _settings.paypal_configured else "missing-config",
            "bedrock": "configured" if _settings.bedrock_model_id else "missing-config",
        },
        "counts": {"routes": len(app.routes)},
    }
