"""
DigiBridge API - Main Application.

FastAPI-based REST API for DigiBridge onboarding and 2FA enrollment.

Usage:
    # Development
    uvicorn digibridge.api.main:app --reload --port 3000

    # Production
    uvicorn digibridge.api.main:app --host 0.0.0.0 --port 3000 --workers 4
"""
import os
import time
import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .routes import auth_router, dashboard_router, health_router
from .deps import get_session_issuer
from ..database.user_store import SQLUserStore, get_user_store
from ..errors import (
    ArtifactEncodingError,
    DigiBridgeError,
    InvalidCode,
    InvalidTransition,
    StorageError,
    TokenError,
    UserNotEnrolled,
    ValidationError,
)

# Configure logging with request context support
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
)


# Custom filter to add request_id to all log records
class RequestIdFilter(logging.Filter):
    """Add request_id to log records."""
    def filter(self, record):
        if not hasattr(record, 'request_id'):
            record.request_id = '-'
        return True


logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format=LOG_FORMAT,
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdFilter())
logger = logging.getLogger(__name__)

# API metadata
API_TITLE = "DigiBridge API"
API_DESCRIPTION = """
**DigiBridge onboarding backend**

## Enrollment

1. Submit profile: `POST /api/auth/profile` -> QR code for an authenticator app
2. Verify code: `POST /api/auth/verify` -> session credential (valid 1 hour)
3. Use credential: `Authorization: Bearer <token>`
"""
API_VERSION = os.getenv("APP_VERSION", "1.0.0")

# Public error bodies per error kind. Verification failures share one
# message so responses do not reveal whether the account exists.
ERROR_RESPONSES = [
    (UserNotEnrolled, status.HTTP_400_BAD_REQUEST, "Invalid authentication code", "INVALID_CODE"),
    (InvalidCode, status.HTTP_400_BAD_REQUEST, "Invalid authentication code", "INVALID_CODE"),
    (ValidationError, 422, "Validation failed", "VALIDATION_ERROR"),
    (ArtifactEncodingError, status.HTTP_400_BAD_REQUEST, "Could not encode provisioning artifact", "ARTIFACT_ENCODING_ERROR"),
    (InvalidTransition, status.HTTP_409_CONFLICT, "Enrollment state conflict", "INVALID_TRANSITION"),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE, "Storage unavailable", "STORAGE_ERROR"),
    (TokenError, status.HTTP_401_UNAUTHORIZED, "Invalid or expired token", "INVALID_TOKEN"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown. A missing signing key aborts startup.
    """
    logger.info(f"Starting DigiBridge API v{API_VERSION}")

    get_session_issuer()

    store = get_user_store()
    if isinstance(store, SQLUserStore):
        store.init_schema()

    yield

    logger.info("Shutting down DigiBridge API")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    allowed_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracking and security headers middleware
    @app.middleware("http")
    async def add_request_tracking_and_security(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id

        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Request failed: {e}", exc_info=True, extra={"request_id": request_id})
            raise

        process_time = (time.time() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"

        # Skip health checks to reduce noise
        if not request.url.path.startswith("/health"):
            logger.info(
                f"{request.method} {request.url.path} "
                f"-> {response.status_code} ({process_time:.1f}ms)",
                extra={"request_id": request_id},
            )

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response

    # Exception handlers
    @app.exception_handler(DigiBridgeError)
    async def digibridge_exception_handler(request: Request, exc: DigiBridgeError):
        request_id = getattr(request.state, 'request_id', '-')
        # Internal logs keep the specific kind; the response may not
        logger.warning(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}",
            extra={"request_id": request_id},
        )

        for error_type, status_code, message, code in ERROR_RESPONSES:
            if isinstance(exc, error_type):
                headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, TokenError) else None
                return JSONResponse(
                    status_code=status_code,
                    content={"error": message, "code": code},
                    headers=headers,
                )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Server error", "code": exc.code},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message, "code": f"HTTP_{exc.status_code}"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            loc = " -> ".join(str(l) for l in error["loc"])
            errors.append(f"{loc}: {error['msg']}")

        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation failed",
                "detail": "; ".join(errors),
                "code": "VALIDATION_ERROR",
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"request_id": request_id})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Server error",
                "request_id": request_id,
                "detail": str(exc) if os.getenv("APP_ENV") == "development" else None,
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(dashboard_router)

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "DigiBridge Backend Running...",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "digibridge.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "3000")),
        reload=True,
        log_level="info",
    )
