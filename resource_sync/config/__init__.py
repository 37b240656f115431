"""
Configuration — Settings model, loader, and validator.
"""

from .loader import SyncSettings, load_settings
from .validator import ConfigReport, check_settings

__all__ = [
    "SyncSettings",
    "load_settings",
    "ConfigReport",
    "check_settings",
]
