"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from agency_billing.api.v1 import billing, health, hours, manager, notifications, payment_methods
from agency_billing.config import settings
from agency_billing.errors import BillingError, ErrorKind
from agency_billing.middleware.logging import LoggingMiddleware, setup_logging
from agency_billing.middleware.metrics import MetricsMiddleware
from agency_billing.schemas.error import REMEDIATION_HINTS, ErrorDetail, ErrorResponse

# Setup structured logging
setup_logging()
logger = structlog.get_logger(__name__)

ERROR_KIND_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EXTERNAL_DEPENDENCY: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("application_starting", env=settings.app_env)
    yield
    logger.info("application_shutting_down")


app = FastAPI(
    title="Agency Billing",
    description="Subscriptions, hours balances and invoicing for the client and manager portals",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)

# Mount Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


@app.exception_handler(BillingError)
async def billing_exception_handler(request: Request, exc: BillingError) -> JSONResponse:
    """
    Map billing errors to HTTP by kind.

    NOT_FOUND -> 404, INVALID_STATE -> 400, EXTERNAL_DEPENDENCY -> 402,
    UNAUTHORIZED -> 403. The body carries the stable error code.
    """
    status_code = ERROR_KIND_STATUS[exc.kind]

    logger.warning(
        "billing_error",
        code=exc.code,
        kind=exc.kind.value,
        message=exc.message,
        status_code=status_code,
    )

    body = ErrorResponse(
        error=exc.code,
        kind=exc.kind.value,
        message=exc.message,
        remediation=REMEDIATION_HINTS.get(exc.code),
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with field-level validation errors."""
    details = [
        ErrorDetail(
            code=error["type"],
            message=error["msg"],
            field=".".join(str(loc) for loc in error["loc"]),
            value=error.get("input"),
        )
        for error in exc.errors()
    ]

    logger.warning("validation_error", error_count=len(details))

    body = ErrorResponse(
        error="ValidationError",
        message="Request validation failed",
        details=details,
        remediation="Check the API documentation for correct request format at /docs",
        request_id=_request_id(request),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body.model_dump(mode="json"),
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Return 503 Service Unavailable for database errors."""
    logger.error(
        "database_error",
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    # Don't expose internal database details in production
    error_message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)

    body = ErrorResponse(
        error="DatabaseError",
        message="A database error occurred",
        details=[ErrorDetail(code="database_error", message=error_message)],
        remediation="Retry the request shortly",
        request_id=_request_id(request),
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(mode="json"),
        headers={"Retry-After": "30"},
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "Agency Billing",
        "version": "0.1.0",
        "status": "operational",
        "docs": "/docs",
    }


app.include_router(health.router, tags=["Health"])
app.include_router(billing.router, prefix="/v1")
app.include_router(hours.router, prefix="/v1")
app.include_router(payment_methods.router, prefix="/v1")
app.include_router(notifications.router, prefix="/v1")
app.include_router(manager.router, prefix="/v1")
