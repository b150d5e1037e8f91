"""Service helpers shared across the repository panel."""

from .settings import Settings, load_settings, redact_secret

__all__ = ["Settings", "load_settings", "redact_secret"]
