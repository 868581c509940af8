"""Configuration package for the payment orchestrator."""
from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
