"""Logging, Prometheus metrics and health checks for the orchestrator."""
from .health import HealthCheck
from .logging import setup_logging
from .metrics import MetricsCollector, metrics

__all__ = ["HealthCheck", "MetricsCollector", "metrics", "setup_logging"]
