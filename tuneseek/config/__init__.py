"""
Configuration package for tuneseek

Usage:

    from tuneseek.config import get_settings

    settings = get_settings()
    timeout = settings.catalog.request_timeout
"""

from .settings import Settings, get_settings, reload_settings

__all__ = [
    'Settings',
    'get_settings',
    'reload_settings',
]
