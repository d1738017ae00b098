"""Configuration module for the Key Gate server."""

from .cors import CORSSettings
from .keys import KeyLifecycleSettings
from .rate_limit import RateLimitSettings
from .scheduler import SchedulerSettings
from .security import SecuritySettings
from .server import ServerSettings
from .settings import ConfigurationError, Settings, get_settings
from .storage import StorageSettings


__all__ = [
    "Settings",
    "get_settings",
    "ConfigurationError",
    "CORSSettings",
    "KeyLifecycleSettings",
    "RateLimitSettings",
    "SchedulerSettings",
    "SecuritySettings",
    "ServerSettings",
    "StorageSettings",
]
