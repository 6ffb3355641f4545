"""
Configuration for the cloud sync engine.
"""

from .settings import CloudSyncSettings, ServerConfig, LogLevel
from .environment import EnvironmentLoader
from .validation import ConfigValidator

__all__ = [
    "CloudSyncSettings",
    "ServerConfig",
    "LogLevel",
    "EnvironmentLoader",
    "ConfigValidator",
]
