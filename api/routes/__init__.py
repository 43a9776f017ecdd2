"""API Routes"""

from . import health, scene

__all__ = ["health", "scene"]
