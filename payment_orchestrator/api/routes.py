"""
API routes for order, checkout and webhook processing.

Orchestration failures propagate as ``PaymentError`` and are rendered by the
exception handlers registered in ``api.main``.
"""
import time
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..core.errors import ErrorCategory, PaymentError
from .dependencies import PaymentServices, get_services
from .schemas import (
    CaptureRecordResponse,
    CaptureResponse,
    CheckoutSessionResponse,
    CreateCheckoutSessionRequest,
    CreateOrderRequest,
    ErrorResponse,
    HealthCheckResponse,
    OrderResponse,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

order_router = APIRouter(prefix="/orders", tags=["orders"])
checkout_router = APIRouter(tags=["checkout"])
webhook_router = APIRouter(tags=["webhooks"])
monitoring_router = APIRouter(tags=["monitoring"])


def _log_failure(event: str, error: PaymentError, **context: Any) -> None:
    if error.kind.category is ErrorCategory.VALIDATION:
        logger.warning(event, error_kind=error.kind.code, error=error.message, **context)
    else:
        logger.error(
            event,
            error_kind=error.kind.code,
            error=error.message,
            debug_id=error.debug_id,
            **context,
        )


@order_router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Create an order",
    description="Validate a cart and create a pending PayPal order",
)
async def create_order(
    request: CreateOrderRequest,
    services: PaymentServices = Depends(get_services),
) -> Dict[str, Any]:
    """Create a new order awaiting payer approval."""
    start_time = time.time()
    try:
        order = await services.orders.create(request.cart)
    except PaymentError as e:
        _log_failure("api_create_order_failed", e)
        raise

    logger.info(
        "api_create_order_success",
        order_id=order.id,
        status=order.status,
        duration_seconds=time.time() - start_time,
    )
    return {
        "id": order.id,
        "status": order.status,
        "approve_url": order.approve_url,
        "links": order.links,
    }


@order_router.post(
    "/{order_id}/capture",
    response_model=CaptureResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Capture an order",
    description="Capture payment for a payer-approved order",
)
async def capture_order(
    order_id: str,
    services: PaymentServices = Depends(get_services),
) -> Dict[str, Any]:
    """Capture an approved order."""
    start_time = time.time()
    try:
        captured = await services.orders.capture(order_id)
    except PaymentError as e:
        _log_failure("api_capture_order_failed", e, order_id=order_id)
        raise

    logger.info(
        "api_capture_order_success",
        order_id=captured.id,
        status=captured.status,
        duration_seconds=time.time() - start_time,
    )
    return {
        "id": captured.id,
        "status": captured.status,
        "captures": [
            CaptureRecordResponse(
                id=c.id, status=c.status, amount=c.amount, currency_code=c.currency_code
            )
            for c in captured.captures
        ],
        "purchase_units": captured.purchase_units,
    }


@checkout_router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Create a hosted checkout session",
    description="Price items from the catalog and open a Stripe Checkout session",
)
async def create_checkout_session(
    request: CreateCheckoutSessionRequest,
    services: PaymentServices = Depends(get_services),
) -> Dict[str, Any]:
    """Create a hosted checkout session."""
    try:
        session = await services.checkout.create_session(request.items, request.currency)
    except PaymentError as e:
        _log_failure("api_create_checkout_session_failed", e)
        raise

    return {"sessionId": session.id, "url": session.url}


@webhook_router.post(
    "/webhook",
    response_model=WebhookResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Stripe webhook endpoint",
    description="Verify and acknowledge Stripe webhook deliveries",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    services: PaymentServices = Depends(get_services),
) -> Dict[str, Any]:
    """
    Handle Stripe webhook events.

    The body is read raw; verification runs over the exact bytes received.
    """
    body = await request.body()
    return await services.webhooks.handle(body, stripe_signature)


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
)
async def liveness(services: PaymentServices = Depends(get_services)) -> Dict[str, Any]:
    """Liveness probe endpoint."""
    return await services.health.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
)
async def readiness(services: PaymentServices = Depends(get_services)) -> Dict[str, Any]:
    """Readiness probe endpoint."""
    result = await services.health.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
