"""
FastAPI application entry point.

This module sets up the FastAPI application with middleware, error
handlers and routers for the energy engine.
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers import energy
from core.config import settings
from core.database import check_db_connection
from core.logging import reset_log_context, setup_logging, start_log_context
from core.exceptions import APIException, ServiceUnavailableError, ValidationError
from services.energy_errors import EnergyValidationError, StoreUnavailableError
import logging
import time
import uuid

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Progress & Energy Engine API",
    description="Reflection scoring, chakra activation, streaks and recalibration",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)


# CORS middleware
# Production: set CORS_ORIGINS env var (comma-separated)
# Development: DEBUG=True allows all origins
if settings.DEBUG:
    allowed_origins = ["*"]
elif settings.CORS_ORIGINS:
    allowed_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
else:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information and request context."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = start_log_context(request_id=request_id)

    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time_ms": round(process_time * 1000, 2),
                }
            }
        )

        # Add timing header
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        return response
    except Exception as e:
        logger.error(
            f"Request failed: {request.method} {request.url.path}",
            exc_info=True,
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                }
            }
        )
        raise
    finally:
        reset_log_context(token)


def _api_error_response(exc: APIException, **extra) -> JSONResponse:
    content = {"detail": exc.detail, "error_code": exc.error_code}
    content.update(extra)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


# Error handlers
@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return _api_error_response(exc)


@app.exception_handler(EnergyValidationError)
async def energy_validation_handler(request: Request, exc: EnergyValidationError):
    """Caller-fixable input problems; never retried."""
    return _api_error_response(ValidationError(exc.detail, field=exc.field))


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    """Transient store failures. Every engine write is idempotent, so retrying is safe."""
    logger.warning(
        f"Store unavailable: {exc.operation}",
        extra={
            "extra_fields": {
                "user_id": str(exc.user_id),
                "operation": exc.operation,
                "path": request.url.path,
            }
        }
    )
    return _api_error_response(
        ServiceUnavailableError(f"Temporarily unable to complete {exc.operation}"),
        retryable=True,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
            }
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
async def health():
    """
    Simple health check for load balancers and uptime monitors.

    Returns:
        - 200: Core systems operational
        - 503: Database unavailable
    """
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "database": "unavailable",
            }
        )

    return {
        "status": "healthy",
        "timestamp": time.time(),
    }


app.include_router(energy.router)
