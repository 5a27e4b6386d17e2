"""
CitizenConnect - FastAPI Application Entry Point

Citizens submit municipal service requests; administrators triage them
through a fixed status workflow.

Run with:
    uvicorn citizen_connect.main:create_app --factory

DESIGN PRINCIPLES:
- Configuration is validated before anything is built; a missing or weak
  JWT secret stops the process
- Every response, success or failure, uses the same JSON envelope
- Stores are swappable (Firestore in production, in-memory for development)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from citizen_connect.core.container import build_container
from citizen_connect.core.errors import CitizenConnectError
from citizen_connect.core.settings import Settings, load_settings
from citizen_connect.models.base import envelope, error_envelope
from citizen_connect.routes import admin, auth, citizen, health
from citizen_connect.services.reset_notifier import ResetNotifier
from citizen_connect.stores.base import CredentialStore, RequestStore
from citizen_connect.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("citizen_connect").setLevel(level.upper())


def safe_validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """
    Validation errors without the submitted values. pydantic puts the
    offending input (for a missing field, the whole body) in `input`,
    which would carry passwords into logs and responses.
    """
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


def register_exception_handlers(app: FastAPI, debug: bool) -> None:

    @app.exception_handler(CitizenConnectError)
    async def citizen_connect_error_handler(request: Request, exc: CitizenConnectError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(exc.message, **exc.extra),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies get the same 400 envelope as service-level validation."""
        errors = safe_validation_errors(exc)
        logger.info(f"Validation error on {request.method} {request.url.path}: {errors}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_envelope("Validation failed", errors=errors),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch all unhandled exceptions and log them with full traceback."""
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        extra = {"error": f"{type(exc).__name__}: {exc}"} if debug else {}
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope("Internal server error", **extra),
        )


def create_app(
    settings: Optional[Settings] = None,
    credential_store: Optional[CredentialStore] = None,
    request_store: Optional[RequestStore] = None,
    notifier: Optional[ResetNotifier] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """
    Build the application.

    Raises:
        ConfigError: settings failed validation or the store could not be
            initialized; the process should exit
    """
    settings = settings or load_settings()
    configure_logging(settings.LOG_LEVEL)
    settings.validate_startup()

    container = build_container(
        settings,
        credential_store=credential_store,
        request_store=request_store,
        notifier=notifier,
        clock=clock,
    )

    # Application lifecycle
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        backend = "in-memory" if settings.USE_MOCK_DB else "firestore"
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({backend} store)")
        yield
        logger.info(f"Shutting down {settings.APP_NAME}")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Municipal service requests with citizen and administrator roles",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.container = container

    register_exception_handlers(app, settings.DEBUG)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(citizen.router)
    app.include_router(admin.router)

    # Uploaded images are served from the same prefix their references carry
    container.image_storage.ensure_directory()
    app.mount(
        f"/{container.image_storage.url_prefix}",
        StaticFiles(directory=container.image_storage.upload_dir, check_dir=False),
        name="uploads",
    )

    # Root endpoint
    @app.get("/")
    async def root():
        """
        Root endpoint - API information.
        """
        return envelope(
            service=settings.APP_NAME,
            version=settings.APP_VERSION,
            status="running",
            docs="/docs",
            health="/health",
        )

    return app
