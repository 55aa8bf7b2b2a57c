"""
Repair Tracker Application Factory
==================================

Pusat perakitan aplikasi FastAPI menggunakan Application Factory Pattern.
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time
import uuid

from .routes import (
    auth_router, repair_order_router, document_router, notification_router,
    sync_router, dashboard_router, forensics_router,
)
from .services import build_external_clients, close_external_clients
from .services.exceptions import RepairTrackerError
from .responses import APIResponse, error_status_code
from .events import EventBus, SessionStateRegistry
from .logging_config import setup_logging
from .config import settings

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def setup_middleware(app: FastAPI):
    """Setup semua middleware aplikasi."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )

    @app.middleware("http")
    async def add_request_id_and_process_time(request: Request, call_next):
        request_id = str(uuid.uuid4())
        start_time = time.time()

        request.state.request_id = request_id
        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        return response


def setup_exception_handlers(app: FastAPI):
    """Setup custom exception handlers."""

    # Service error yang lolos dari action_result (mis. dari dependency)
    @app.exception_handler(RepairTrackerError)
    async def repair_tracker_exception_handler(request: Request, exc: RepairTrackerError):
        body = APIResponse.error(exc.message, exc.error_code, exc.details)
        body["request_id"] = getattr(request.state, 'request_id', None)
        return JSONResponse(status_code=error_status_code(exc.error_code), content=body)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        body = APIResponse.error("An unexpected error occurred", 'INTERNAL_ERROR')
        body["request_id"] = getattr(request.state, 'request_id', None)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def setup_routes(app: FastAPI):
    """Daftarkan (include) semua router ke aplikasi."""

    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": __version__
        }

    @app.get("/", tags=["System"])
    async def root():
        return {
            "message": "Repair Tracker API",
            "version": __version__,
            "docs_url": "/docs",
            "redoc_url": "/redoc"
        }

    app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(repair_order_router, prefix="/api/repair-orders", tags=["Repair Orders"])
    app.include_router(document_router, prefix="/api/repair-orders", tags=["Documents"])
    app.include_router(notification_router, prefix="/api/notifications", tags=["Notifications"])
    app.include_router(sync_router, prefix="/api/sync", tags=["ERP Sync"])
    app.include_router(dashboard_router, prefix="/api/dashboard", tags=["Dashboard"])
    app.include_router(forensics_router, prefix="/api/dashboard-forensics", tags=["Dashboard"])


def create_app() -> FastAPI:
    """
    Application Factory: Membuat dan mengkonfigurasi instance FastAPI.
    """
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Repair Tracker API starting up")
        if not app.state.external_clients:
            app.state.external_clients = build_external_clients(settings)
        yield
        logger.info("Repair Tracker API shutting down")
        close_external_clients(app.state.external_clients)
        app.state.external_clients = {}

    app = FastAPI(
        title="Repair Order Tracker API",
        description="Repair order tracking dengan ERP sync, approval queue, dan dashboard",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # State bersama: event bus dan state per session
    app.state.event_bus = EventBus()
    app.state.session_states = SessionStateRegistry(app.state.event_bus, max_sessions=settings.SESSION_STATE_MAX)
    app.state.external_clients = {}

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routes(app)

    logger.info("FastAPI app created and configured")
    return app
