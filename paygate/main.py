"""
Main Application - FastAPI application setup.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from paygate.api.routes import router
from paygate.config import GatewayConfig, settings
from paygate.db.migration_runner import run_migrations
from paygate.db.session import close_engine, get_engine
from paygate.observability import get_logger, metrics, setup_logging, setup_tracing
from paygate.observability.tracing import instrument_fastapi, instrument_sqlalchemy
from paygate.services.notifications import ConfirmationNotifier
from paygate.services.przelewy24 import Przelewy24Client

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Builds the gateway client and notifier once and closes them at shutdown.
    """
    gateway_config = GatewayConfig.from_settings(settings)

    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        gateway=repr(gateway_config),
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    if settings.accepts_unsigned_webhooks:
        logger.warning(
            "webhook_signature_secret_unset",
            detail="Set WEBHOOK_SIGNATURE_SECRET to reject forged settlement notifications",
        )

    if settings.run_migrations_on_startup:
        await asyncio.to_thread(run_migrations)

    instrument_sqlalchemy(get_engine())

    gateway = Przelewy24Client(gateway_config)
    notifier = ConfirmationNotifier(
        api_key=settings.resend_api_key,
        email_from=settings.email_from,
        timeout_seconds=settings.email_timeout_seconds,
    )
    app.state.gateway = gateway
    app.state.notifier = notifier

    yield

    logger.info("application_shutting_down")
    await gateway.aclose()
    await notifier.aclose()
    await close_engine()
    logger.info("database_engine_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log detailed validation errors for debugging."""
    sanitized_errors = []
    for error in exc.errors():
        sanitized = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        if "ctx" in error:
            sanitized["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        sanitized_errors.append(sanitized)

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=sanitized_errors,
    )
    return JSONResponse(
        status_code=422,
        content={"detail": sanitized_errors},
    )


# Setup tracing
setup_tracing()
instrument_fastapi(app)


class ProxyHeadersMiddleware(BaseHTTPMiddleware):
    """Trust X-Forwarded-Proto from the reverse proxy so urlReturn stays https."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        if forwarded_proto:
            request.scope["scheme"] = forwarded_proto

        return await call_next(request)


app.add_middleware(ProxyHeadersMiddleware)


@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Log all HTTP requests with timing."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    endpoint = request.url.path
    method = request.method

    logger.info(
        "request_started",
        method=method,
        path=request.url.path,
        request_id=request_id,
    )

    metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()

    try:
        response = await call_next(request)
        duration = time.time() - start_time

        metrics.record_http_request(endpoint, method, response.status_code, duration)

        logger.info(
            "request_completed",
            method=method,
            path=request.url.path,
            status_code=response.status_code,
            duration_seconds=duration,
            request_id=request_id,
        )

        return response
    except Exception as e:
        duration = time.time() - start_time
        metrics.record_http_request(endpoint, method, 500, duration)
        metrics.record_error(type(e).__name__, "http_request")

        logger.error(
            "request_failed",
            method=method,
            path=request.url.path,
            error=str(e),
            duration_seconds=duration,
            request_id=request_id,
            exc_info=True,
        )
        raise
    finally:
        metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()


app.include_router(router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return PlainTextResponse(generate_latest())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "paygate.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
