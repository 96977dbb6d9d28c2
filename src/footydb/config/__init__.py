"""Configuration helpers for data paths and enrichment defaults."""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
