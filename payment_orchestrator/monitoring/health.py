"""
Health checks for liveness/readiness probes.

Readiness never calls a provider; it only reports configuration and whether
a PayPal access token is currently cached.
"""
from typing import Any, Dict, Optional

import structlog

from ..config import Settings

logger = structlog.get_logger(__name__)


class HealthCheck:
    """Health check service for the orchestrator's dependencies."""

    def __init__(self, settings: Settings, auth_cache: Optional[Any] = None) -> None:
        """
        Initialize health check service.

        Args:
            settings: Application settings
            auth_cache: PayPal access token cache, if wired
        """
        self.settings = settings
        self.auth_cache = auth_cache

    def check_configuration(self) -> Dict[str, Any]:
        missing = [
            name
            for name in (
                "paypal_client_id",
                "paypal_client_secret",
                "stripe_secret_key",
                "stripe_webhook_secret",
            )
            if not getattr(self.settings, name)
        ]
        return {
            "status": "unhealthy" if missing else "healthy",
            "missing": missing,
            "paypal_base_url": self.settings.paypal_base_url,
            "stripe_test_mode": self.settings.is_test_mode,
        }

    def check_paypal_auth(self) -> Dict[str, Any]:
        cached = bool(self.auth_cache is not None and self.auth_cache.has_valid_token())
        return {"status": "healthy", "token_cached": cached}

    async def liveness(self) -> Dict[str, Any]:
        """Liveness probe: the process is serving requests."""
        return {"status": "healthy", "message": "alive"}

    async def readiness(self) -> Dict[str, Any]:
        """
        Readiness probe.

        Returns:
            Dict[str, Any]: Overall status plus individual checks
        """
        checks = {
            "configuration": self.check_configuration(),
            "paypal_auth": self.check_paypal_auth(),
        }
        healthy = all(check["status"] == "healthy" for check in checks.values())
        if not healthy:
            logger.warning("readiness_check_failed", checks=checks)
        return {"status": "healthy" if healthy else "unhealthy", "checks": checks}
