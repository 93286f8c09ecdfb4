"""Core: config, lifespan and exception handlers (application bootstrap)."""

from auditflow.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
