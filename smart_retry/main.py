"""
Smart Retry Collections Decision Service

A FastAPI-based service that decides, for each delinquent loan in a
portfolio, whether collection attempts should stop, retry immediately, or be
scheduled for a future date.

Decision Policy:
----------------
The engine combines two kinds of rules:

1. Kill switches and hard caps: settled balances, chargebacks, customer
   orders, invalid or blocked accounts, blocked banks, debt-age and attempt
   limits. These stop collection outright.
2. Payment-timing heuristics: micro-debt urgency, fresh debt, risk-bank and
   high-amount spacing on semi-monthly paydays, standard 4-day retries.

The engine is pure and deterministic: given the same loans, history,
configuration and decision moment it always returns the same decisions.
This module only wires the HTTP boundary around it.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from smart_retry.api import router
from smart_retry.api.routes import API_KEY_HEADER
from smart_retry.config import settings
from smart_retry.database import engine, Base
from smart_retry.services.history_store import HistoryStoreError
from smart_retry.logging import (
    configure_logging,
    get_logger,
    set_request_context,
    clear_request_context,
    generate_request_id,
    TimedOperation,
)
from smart_retry import metrics

# Configure structured logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "service_starting",
        service_name=settings.service_name,
        decision_mode=settings.decision_mode,
    )

    # Create the history table if it doesn't exist (in production, use migrations)
    with TimedOperation("schema_init", logger):
        Base.metadata.create_all(bind=engine)

    if not settings.decision_api_key:
        logger.warning("decision_api_key_missing", detail="every decide request will be rejected")

    logger.info("service_started", service_name=settings.service_name)

    yield

    logger.info("service_stopping", service_name=settings.service_name)


app = FastAPI(
    title="Smart Retry Decision Service",
    description="Collections retry decision engine for delinquent loans",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", API_KEY_HEADER],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """
    Middleware for request tracing, logging, and metrics.

    Sets up request context with:
    - request_id: Unique identifier for tracing
    - Timing for duration_ms calculation
    - Prometheus metrics collection
    """
    method = request.method
    path = request.url.path

    # Skip logging/metrics for health and metrics endpoints
    if path in ("/health", "/metrics"):
        return await call_next(request)

    # Generate and set request ID
    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    set_request_context(request_id)

    # Store request_id in request state for access in route handlers
    request.state.request_id = request_id

    start_time = time.perf_counter()

    logger.info("request_received", method=method, path=path)

    try:
        response = await call_next(request)

        duration_seconds = time.perf_counter() - start_time

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_seconds * 1000, 2),
        )

        metrics.record_http_request(method, path, response.status_code, duration_seconds)

        # Add request_id to response headers for tracing
        response.headers["X-Request-ID"] = request_id

        return response

    except Exception as e:
        duration_seconds = time.perf_counter() - start_time

        logger.error(
            "request_failed",
            method=method,
            path=path,
            duration_ms=round(duration_seconds * 1000, 2),
            error=str(e),
        )

        metrics.record_http_request(method, path, 500, duration_seconds)

        raise

    finally:
        clear_request_context()


@app.exception_handler(HistoryStoreError)
async def history_store_error_handler(request: Request, exc: HistoryStoreError):
    """Handle transaction history store failures."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error("history_store_error", detail=exc.detail)

    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": exc.detail},
        headers={"X-Request-ID": request_id},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Return a JSON 500 for anything the routes did not handle."""
    logger.error("unhandled_error", error=str(exc), error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": str(exc)},
    )


# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "ok", "service": settings.service_name}


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
