"""Suba&Go API: FastAPI application factory."""


import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from subago.core.config import settings
from subago.core.exceptions import register_exception_handlers
from subago.middleware.audit import AuditMiddleware
from subago.realtime.gateway import gateway
from subago.schemas.common import HealthResponse
from subago.services.scheduler import AuctionStatusScheduler

# RPC + realtime
from subago.routers.rpc import router as rpc_router
from subago.routers.ws import router as ws_router

# v1 routers
from subago.routers.v1.auctions import router as auctions_v1_router
from subago.routers.v1.auth import router as auth_v1_router
from subago.routers.v1.bids import router as bids_v1_router
from subago.routers.v1.companies import router as companies_v1_router
from subago.routers.v1.feedback import router as feedback_v1_router
from subago.routers.v1.items import router as items_v1_router
from subago.routers.v1.observations import router as observations_v1_router
from subago.routers.v1.tenants import router as tenants_v1_router
from subago.routers.v1.users import router as users_v1_router


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    level = logging.DEBUG if settings.app_env == "development" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = AuctionStatusScheduler(broadcaster=gateway)
        await scheduler.start()
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


def create_app() -> FastAPI:
    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url="/docs" if settings.app_env == "development" else None,
        redoc_url="/redoc" if settings.app_env == "development" else None,
        lifespan=lifespan,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # --- Audit middleware ---
    app.add_middleware(AuditMiddleware)

    # --- Global exception handlers ---
    register_exception_handlers(app)

    # --- v1 API routes (/api/v1/*) ---
    for v1_router in (
        auth_v1_router,
        tenants_v1_router,
        companies_v1_router,
        users_v1_router,
        items_v1_router,
        auctions_v1_router,
        bids_v1_router,
        observations_v1_router,
        feedback_v1_router,
    ):
        app.include_router(v1_router, prefix="/api/v1")

    # --- RPC (/api/rpc/*) and WebSocket (/ws) ---
    app.include_router(rpc_router)
    app.include_router(ws_router)

    # --- Health check ---
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        return HealthResponse(app=settings.app_name, env=settings.app_env)

    return app


app = create_app()
