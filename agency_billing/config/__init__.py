"""
Configuration module for the agency billing service.
"""
from .settings import (
    AppSettings,
    get_settings,
    load_settings,
    reload_settings
)

__all__ = [
    'AppSettings',
    'get_settings',
    'load_settings',
    'reload_settings'
]
