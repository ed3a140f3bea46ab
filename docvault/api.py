"""FastAPI Server for DocVault

Builds the application: configuration, document store, token service,
extraction, object storage and LLM client are constructed once here and
handed to the routers through ``app.state``.
"""

import logging
import secrets
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import TokenService
from .chat import ChatService, create_llm_client
from .config import DocVaultConfig, load_config
from .database import Database
from .documents import DocumentService
from .errors import DocVaultError
from .extraction import TextExtractor
from .ingestion import IngestionService
from .logging_utils import request_id_ctx, setup_logging
from .models import ErrorResponse, HealthResponse
from .storage import S3Storage, create_storage

logger = logging.getLogger(__name__)


def _resolve_secret_key(config: DocVaultConfig) -> str:
    if config.auth.secret_key:
        return config.auth.secret_key
    logger.warning("JWT_SECRET_KEY not set; using a random per-process key. Tokens will not survive restarts.")
    return secrets.token_urlsafe(32)


def create_app(
    config: Optional[DocVaultConfig] = None,
    *,
    database: Optional[Database] = None,
    extractor: Optional[TextExtractor] = None,
    llm_client=None,
    storage: Optional[S3Storage] = None,
) -> FastAPI:
    """
    Build the DocVault application.

    Collaborators not passed in are built from ``config``.
    """
    config = config or load_config()
    setup_logging(config.logging.level, config.logging.format)

    database = database or Database(config.database.url, echo=config.database.echo)
    extractor = extractor or TextExtractor.from_config(config.upload)
    if storage is None:
        storage = create_storage(config.storage)
    if llm_client is None:
        llm_client = create_llm_client(config.llm)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup, release connections on shutdown."""
        logger.info("Starting DocVault API")
        database.init_db()
        if not config.auth.protect_content_updates:
            logger.warning("PUT /update/{id} is unauthenticated. Set auth.protect_content_updates=true to require ownership.")
        try:
            yield
        finally:
            logger.info("Shutting down DocVault API")
            database.dispose()

    app = FastAPI(
        title=config.api.title,
        description=config.api.description,
        version=config.api.version,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.database = database
    app.state.tokens = TokenService(
        secret_key=_resolve_secret_key(config),
        algorithm=config.auth.algorithm,
        expire_minutes=config.auth.token_expire_minutes,
    )
    app.state.storage = storage
    app.state.ingestion = IngestionService(extractor, config.upload, storage)
    app.state.documents = DocumentService(storage, config.storage.share_link_expiration)
    app.state.chat = ChatService(llm_client, config.llm)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True)
            )
        try:
            response.headers["X-Request-Id"] = request_id
            return response
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            status_code = response.status_code
            logger.info(
                "request_completed",
                extra={
                    "event": "request_completed",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": duration_ms
                }
            )
            request_id_ctx.reset(token)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=config.api.cors_credentials,
        allow_methods=config.api.cors_methods,
        allow_headers=config.api.cors_headers,
    )

    from .routers.auth import router as auth_router
    from .routers.chat import router as chat_router
    from .routers.documents import router as documents_router

    app.include_router(auth_router)
    app.include_router(documents_router)
    app.include_router(chat_router)

    _register_routes(app)
    _register_error_handlers(app)
    return app


def _register_routes(app: FastAPI):

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": app.title,
            "version": app.version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint."""
        state = request.app.state
        database_ok = state.database.ping()
        payload = HealthResponse(
            status="healthy" if database_ok else "unhealthy",
            database=database_ok,
            llm_configured=state.chat.llm_client is not None,
            storage_configured=state.storage is not None,
        )
        if not database_ok:
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload.model_dump())
        return payload


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _register_error_handlers(app: FastAPI):

    @app.exception_handler(DocVaultError)
    async def docvault_error_handler(request: Request, exc: DocVaultError):
        """Render domain errors with their own status code."""
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}", exc_info=exc.__cause__)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message).model_dump(exclude_none=True)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        message = exc.detail if exc.status_code < 500 else "Internal server error"
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(message)).model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed or missing input is a 400, without echoing the payload."""
        logger.info(f"Request validation failed on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                error="Invalid request",
                detail="One or more request fields are invalid."
            ).model_dump()
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True)
        )


app = create_app()

