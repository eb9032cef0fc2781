"""Configuration helpers for the API transport."""

from .settings import Settings, SettingsManager, StorageBackend

__all__ = [
    "Settings",
    "SettingsManager",
    "StorageBackend",
]
