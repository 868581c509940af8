"""
Pydantic schemas for API request/response models.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CreateOrderRequest(BaseModel):
    """Request schema for creating a PayPal order."""

    # Left untyped: the cart validator owns shape checks and their error kinds
    cart: Any = Field(default=None, description="Cart lines")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "cart": [
                        {
                            "name": "Ring",
                            "unit_amount": {"value": "50.00", "currency_code": "USD"},
                            "quantity": "1",
                        }
                    ]
                }
            ]
        }
    }


class OrderResponse(BaseModel):
    """Response schema for order creation."""

    id: str = Field(..., description="Provider order id")
    status: str = Field(..., description="Provider order status")
    approve_url: Optional[str] = Field(default=None, description="Payer approval URL")
    links: List[Dict[str, Any]] = Field(default_factory=list, description="Provider links")


class CaptureRecordResponse(BaseModel):
    id: str
    status: str
    amount: Optional[Decimal] = None
    currency_code: Optional[str] = None


class CaptureResponse(BaseModel):
    """Response schema for order capture."""

    id: str = Field(..., description="Provider order id")
    status: str = Field(..., description="Provider order status")
    captures: List[CaptureRecordResponse] = Field(default_factory=list)
    purchase_units: List[Dict[str, Any]] = Field(default_factory=list)


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating a hosted checkout session."""

    items: Any = Field(default=None, description="Items as [{id, amount}]")
    currency: Any = Field(default="USD", description="Currency code or symbol")

    model_config = {
        "json_schema_extra": {
            "examples": [{"items": [{"id": 12, "amount": 1}], "currency": "USD"}]
        }
    }


class CheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""

    sessionId: str = Field(..., description="Checkout session id")
    url: Optional[str] = Field(default=None, description="Hosted checkout redirect URL")


class WebhookResponse(BaseModel):
    """Response schema for webhook processing."""

    received: bool = Field(..., description="Delivery acknowledged")


class ErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
    debug_id: Optional[str] = None
    details: Optional[List[Dict[str, Any]]] = None


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual checks")
    message: Optional[str] = Field(default=None, description="Status message")
