import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware

from fanclub.core.config import get_settings
from fanclub.core.logging import setup_logging
from fanclub.core.middleware import SecurityHeadersMiddleware
from fanclub.core.responses import (
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fanclub.data.schema import init_db
from fanclub.db import engine
from fanclub.routes import admin, analytics, auth, models, monitoring, monthly_data, stripe_billing, usage_stats

setup_logging()
init_db()
cfg = get_settings()

app = FastAPI(
    title="Fan Club Revenue Dashboard",
    version="1.0",
    docs_url="/docs" if cfg.ENABLE_SWAGGER else None,
    redoc_url="/redoc" if cfg.ENABLE_SWAGGER else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cfg.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(SecurityHeadersMiddleware)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(auth.router)
app.include_router(monthly_data.router)
app.include_router(models.router)
app.include_router(analytics.router)
app.include_router(usage_stats.router)
app.include_router(monitoring.router)
app.include_router(admin.router)
app.include_router(stripe_billing.router)

logging.getLogger(__name__).info(
    "app ready env=%s swagger=%s", cfg.ENVIRONMENT, cfg.ENABLE_SWAGGER
)


@app.get("/healthz")
async def healthz():
    return {"ok": True}


@app.get("/api/_db/health")
async def db_health(request: Request):
    """Lightweight DB probe. Optionally protected by X-Health-Token when HEALTH_TOKEN is set."""
    required = os.getenv("HEALTH_TOKEN")
    if required:
        provided = request.headers.get("x-health-token")
        if not provided or provided != required:
            return JSONResponse({"ok": False}, status_code=401)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"ok": True}
    except Exception:
        logging.getLogger(__name__).exception("db health probe failed")
        return JSONResponse({"ok": False}, status_code=500)
