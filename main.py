"""
main.py
-------
FastAPI application for the LoRaWAN emulator backend.

Routers:
  /api/organizations, /api/applications, /api/gateways
                         organisation reads, application and gateway CRUD
  /api/devices           device CRUD and telemetry (token auth)
  /api/ttn-settings, /api/ttn/simulate
                         TTN credentials and simulated uplinks (token auth)
  /api/frostguard-sync   FrostGuard state sync (HMAC signature)
  /webhooks/ttn          uplinks delivered by TTN (optional shared secret)

Every request starts with a clean structlog context carrying method and
path; dependencies and routes bind more (organization_id, record_id).

Run with:
    uvicorn main:app --reload
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from lorasim.api.routes import applications, devices, gateways, organizations, ttn, webhooks
from lorasim.core.config import settings
from lorasim.core.logging import bind_context, clear_context, configure_logging, get_logger
from lorasim.db.session import engine

logger = get_logger(__name__)


def _warn_on_weak_webhook_config() -> None:
    if settings.WEBHOOK_ALLOW_INVALID_SIGNATURE:
        logger.warning(
            "WEBHOOK_ALLOW_INVALID_SIGNATURE is enabled: unverified FrostGuard "
            "deliveries WILL be processed",
            env=settings.APP_ENV,
        )
    if not settings.FROSTGUARD_WEBHOOK_SECRET:
        logger.warning("FROSTGUARD_WEBHOOK_SECRET is empty: every delivery will fail verification")
    if not settings.STACK_PROJECT_ID:
        logger.warning("STACK_PROJECT_ID is empty: no identity token can verify")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    configure_logging()
    logger.info("Starting up", app=settings.APP_NAME, env=settings.APP_ENV, debug=settings.DEBUG)
    _warn_on_weak_webhook_config()
    yield
    logger.info("Shutting down, disposing DB engine")
    await engine.dispose()


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "LoRaWAN sensor emulator backend: per-organisation devices, "
            "TTN uplink simulation and FrostGuard webhook sync."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-stack-auth"],
    )

    @app.middleware("http")
    async def request_log_context(request: Request, call_next):
        clear_context()
        bind_context(method=request.method, path=request.url.path)
        return await call_next(request)

    app.include_router(organizations.router)
    app.include_router(applications.router)
    app.include_router(gateways.router)
    app.include_router(devices.router)
    app.include_router(ttn.router)
    app.include_router(webhooks.router)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.get("/health", tags=["Health"], summary="Service and database health")
    async def health() -> JSONResponse:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("Health check: database unreachable", error=str(exc))
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "degraded", "database": "unreachable"},
            )
        return JSONResponse(
            content={"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV, "database": "ok"}
        )

    return app


app = create_application()
