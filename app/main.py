"""
Event Analytics Engine — register apps, collect events, query summaries.
Main application entry point.
"""

import datetime
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.analytics import router as analytics_router
from app.api.auth import router as auth_router
from app.api.short_links import redirect_router as short_link_redirect_router
from app.api.short_links import router as short_link_router
from app.core.cache import open_cache
from app.core.errors import register_exception_handlers
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.security import SecurityHeadersMiddleware
from app.models.database import create_engine, create_session_maker
from app.config import get_settings

import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.engine = create_engine(settings)
    app.state.session_maker = create_session_maker(app.state.engine)
    app.state.cache = await open_cache(settings)
    logger.info("analytics_engine_starting", port=settings.port,
                cache_enabled=app.state.cache is not None)
    yield
    logger.info("analytics_engine_shutting_down")
    if app.state.cache is not None:
        await app.state.cache.close()
    await app.state.engine.dispose()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Event analytics ingestion and aggregation API.",
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
)

register_exception_handlers(app)


def install_middleware(app: FastAPI, settings) -> None:
    """Security headers, then CORS, then the rate limiter (innermost).

    A rejected request's 429 still passes back through CORS and the
    security headers on its way out.
    """
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=[settings.api_key_header, "Content-Type"],
    )
    app.add_middleware(SecurityHeadersMiddleware, api_prefix=settings.api_prefix)


install_middleware(app, settings)

# --- Routes ---
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(analytics_router, prefix=settings.api_prefix)
app.include_router(short_link_router, prefix=settings.api_prefix)
app.include_router(short_link_redirect_router)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
    }


@app.get("/")
async def root():
    return {
        "message": settings.app_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else None,
        "health": "/health",
    }


def run():
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
