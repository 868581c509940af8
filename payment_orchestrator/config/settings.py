"""Application settings using Pydantic for environment-based configuration."""
from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # PayPal (order/capture provider)
    paypal_client_id: str = Field(..., description="PayPal REST client id")
    paypal_client_secret: str = Field(..., description="PayPal REST client secret")
    paypal_base_url: str = Field(
        default="https://api-m.sandbox.paypal.com",
        description="PayPal API base URL (sandbox or live)",
    )
    paypal_brand_name: str = Field(
        default="Storefront", description="Brand shown on the PayPal approval page"
    )

    # Stripe (hosted checkout provider)
    stripe_secret_key: str = Field(..., description="Stripe secret API key (sk_test_...)")
    stripe_webhook_secret: str = Field(..., description="Stripe webhook signing secret")
    webhook_tolerance_seconds: int = Field(
        default=300, description="Accepted webhook signature age (seconds)"
    )

    # Timeouts
    provider_request_timeout: float = Field(
        default=20.0, description="Timeout for order, capture and session calls (seconds)"
    )
    token_request_timeout: float = Field(
        default=10.0, description="Timeout for the PayPal credential exchange (seconds)"
    )
    token_expiry_margin_seconds: int = Field(
        default=60, description="Refresh access tokens this long before they expire"
    )

    # Pricing
    price_ceiling: Decimal = Field(
        default=Decimal("1000000"), description="Largest acceptable catalog unit price"
    )
    usd_ils_rate: Decimal = Field(
        default=Decimal("3.3"), description="Fallback USD to ILS exchange rate"
    )

    # Redirect targets
    storefront_url: str = Field(
        default="http://localhost:3000", description="Storefront base URL"
    )
    api_url: str = Field(default="http://localhost:8000", description="Public API base URL")

    # Hosted checkout shipping
    shipping_countries: str = Field(
        default="US,IL", description="Allowed shipping countries (comma-separated)"
    )
    standard_shipping_cents: int = Field(default=1500, description="Standard shipping (USD cents)")
    expedited_shipping_cents: int = Field(
        default=2000, description="Expedited shipping (USD cents)"
    )

    # Application Configuration
    app_name: str = Field(default="payment-orchestrator", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=4, description="Number of API workers")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="CORS allowed origins (comma-separated)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("stripe_secret_key")
    @classmethod
    def validate_stripe_key(cls, v: str) -> str:
        """Validate the Stripe secret key prefix."""
        if not v.startswith("sk_test_") and not v.startswith("sk_live_"):
            raise ValueError(
                "Invalid Stripe secret key format. Must start with 'sk_test_' or 'sk_live_'"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator(
        "provider_request_timeout",
        "token_request_timeout",
        "price_ceiling",
        "usd_ils_rate",
    )
    @classmethod
    def validate_positive(cls, v):
        if not v > 0:
            raise ValueError("Must be greater than zero")
        return v

    @field_validator("paypal_base_url", "storefront_url", "api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    def get_shipping_countries_list(self) -> List[str]:
        """Parse allowed shipping countries from comma-separated string."""
        return [c.strip().upper() for c in self.shipping_countries.split(",") if c.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def is_test_mode(self) -> bool:
        """Check if using Stripe test mode."""
        return self.stripe_secret_key.startswith("sk_test_")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
