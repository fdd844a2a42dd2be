"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from installment_ledger.api.dependencies import get_request_id
from installment_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from installment_ledger.api.v1 import installments, jobs, reports
from installment_ledger.config import settings
from installment_ledger.domain.exceptions import (
    ConcurrencyConflictError,
    DuplicateError,
    ImmutableStateError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ReferenceLookupError,
    ReferentialMismatchError,
    ValidationError,
)
from installment_ledger.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)

# Most specific class first; the first match wins
ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (ReferentialMismatchError, 422),
    (ValidationError, 400),
    (DuplicateError, 409),
    (ImmutableStateError, 423),
    (InvalidStateError, 412),
    (ReferenceLookupError, 503),
    (ConcurrencyConflictError, 503),
)


def status_code_for(error: LedgerError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Map typed ledger errors to HTTP responses"""
    status_code = status_code_for(exc)
    logging.warning(f"Request rejected: {exc}", extra={"request_id": get_request_id(request), "error": exc.code})
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.error(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=500, content={"error": "internal_error", "message": "Internal server error"})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Installment Ledger",
        description="Installment scheduling, payment and reporting service for society members",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(installments.router, prefix="/v1", tags=["installments"])
    app.include_router(jobs.router, prefix="/v1", tags=["jobs"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
