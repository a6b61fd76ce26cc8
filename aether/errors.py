"""Exception hierarchy shared by the core modules."""

from __future__ import annotations

__all__ = ["AetherError", "ConfigurationError", "RenderBackendError"]


class AetherError(Exception):
    """Base class for every error raised on purpose by the package."""


class ConfigurationError(AetherError, ValueError):
    """Invalid parameters detected before anything is generated or rendered."""


class RenderBackendError(AetherError, RuntimeError):
    """The rendering backend could not acquire its graphics resources."""
