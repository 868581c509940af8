"""
Main FastAPI application.

Payment orchestration API with:
- CORS configuration
- Error handling
- Request ID tracking
- Structured logging
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings, get_settings
from ..core.errors import ErrorCategory, PaymentError
from ..monitoring.logging import setup_logging
from .dependencies import PaymentServices, build_services
from .routes import checkout_router, monitoring_router, order_router, webhook_router

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[PaymentServices] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings; loaded from the environment if omitted
        services: Prebuilt service graph; built from settings if omitted
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            test_mode=settings.is_test_mode,
        )
        yield
        logger.info("application_shutdown")
        await app.state.services.close()

    app = FastAPI(
        title="Payment Orchestrator",
        description=(
            "Order/capture and hosted checkout orchestration across PayPal and Stripe, "
            "with cart validation and signed webhook handling."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """Add a request ID to all requests for tracing."""
        request_id = str(uuid.uuid4())
        start_time = time.time()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        logger.info(
            "request_started",
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
        """Render orchestration errors with their mapped status."""
        if exc.kind.category is ErrorCategory.SIGNATURE:
            # Flat message only; nothing that would help iterate toward a forgery
            return JSONResponse(
                status_code=exc.http_status, content={"error": "Webhook verification failed"}
            )
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_response(include_details=not settings.is_production),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

    app.include_router(order_router)
    app.include_router(checkout_router)
    app.include_router(webhook_router)
    app.include_router(monitoring_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": __version__,
            "status": "operational",
            "environment": settings.app_env,
            "test_mode": settings.is_test_mode,
            "docs": "/docs",
            "health": "/health/ready",
            "metrics": "/metrics",
        }

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "payment_orchestrator.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=settings.api_workers if not settings.debug else 1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
