"""
API handlers.
"""

from .health import HealthHandler

__all__ = ["HealthHandler"]
