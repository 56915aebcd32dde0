"""
Configuration management for the dental receptionist.
"""

from .settings import Settings, get_settings
from .clinic import ClinicConfig, parse_calendar_ids

__all__ = [
    "Settings",
    "get_settings",
    "ClinicConfig",
    "parse_calendar_ids",
]
