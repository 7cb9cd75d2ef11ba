# Configuration module for the Redis session store
from .settings import (
    ConfigurationError,
    Environment,
    StoreOptions,
    StoreSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "ConfigurationError",
    "Environment",
    "StoreOptions",
    "StoreSettings",
    "clear_settings_cache",
    "get_settings",
]
