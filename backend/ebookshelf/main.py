"""
Ebookshelf Backend: FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   `create_app()` wires middleware, exception handlers and routers; the
       lifespan hook validates configuration, opens the database engine and
       creates the schema before the first request is accepted.
Who:   uvicorn (`uvicorn ebookshelf.main:app`).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌──────────┐ ┌────────┐ ┌──────────┐       │
    │  │ Req ID   │→│ Logging  │→│ GZip   │→│ CORS     │       │
    │  └──────────┘ └──────────┘ └────────┘ └──────────┘       │
    │                                                          │
    │  Routes:                                                 │
    │  /auth/*   /upload-book   /books/*   /health             │
    │                                                          │
    │  Exception Handlers:                                     │
    │  EbookshelfError → its status_code, {"error": message}   │
    │  RequestValidationError → 400   Exception → 500          │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate required settings (startup aborts if any is missing)
    3. Open the engine and create missing tables
    4. Create the temporary upload directory

    Shutdown:
    1. Dispose the engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from ebookshelf import __version__
from ebookshelf.config import settings
from ebookshelf.database import create_schema, dispose_engine, init_engine
from ebookshelf.exceptions import (
    BlobStorageError,
    DatabaseError,
    EbookshelfError,
)
from ebookshelf.middleware.logging import RequestLoggingMiddleware
from ebookshelf.middleware.request_id import RequestIDMiddleware, request_id_var
from ebookshelf.routes import auth, books, health, upload

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Internal server error."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Ebookshelf Backend %s starting up...", __version__)

    try:
        settings.validate_required()
    except ValueError as e:
        logger.critical("Configuration error: %s", str(e))
        logger.critical("Fix the configuration and restart the server.")
        raise

    init_engine()
    await create_schema()

    tmp_dir = Path(settings.upload_tmp_dir)
    tmp_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Upload temp directory: %s", tmp_dir.resolve())

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Ebookshelf Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to `{"error": "<message>"}` responses.

    Handler hierarchy:
        ValidationError         → 400
        AuthenticationError     → 401
        NotFoundError           → 404
        ConflictError           → 409
        BlobStorageError        → 500, message kept, provider detail logged
        DatabaseError           → 500, per-operation message, detail logged
        RequestValidationError  → 400 "Invalid request body."
        Exception (fallback)    → 500 "Internal server error."

    `context` is logged server-side and never returned.
    """

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(BlobStorageError)
    async def handle_blob_storage_error(request: Request, exc: BlobStorageError):
        rid = request_id_var.get("")
        logger.error("[%s] Blob storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(EbookshelfError)
    async def handle_application_error(request: Request, exc: EbookshelfError):
        """Client-correctable errors: the message is safe to show as is."""
        rid = request_id_var.get("")
        logger.warning(
            "[%s] %s (%d): %s",
            rid,
            type(exc).__name__,
            exc.status_code,
            exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Body was not parseable into the expected shape."""
        rid = request_id_var.get("")
        logger.warning("[%s] Malformed request body: %s", rid, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body."})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(status_code=500, content={"error": GENERIC_SERVER_ERROR})


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Ebookshelf API",
        description=(
            "Personal ebook shelf: upload PDFs, track reading progress and "
            "keep per-book vocabulary lists and notes."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executed in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(upload.router)
    app.include_router(books.router)
    app.include_router(health.router)

    return app


app = create_app()
