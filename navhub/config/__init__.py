from __future__ import annotations

from .redis import RedisConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .sync import SyncClientConfig, SyncServerConfig

__all__ = [
    "AppConfig",
    "RedisConfig",
    "RuntimeConfig",
    "Settings",
    "SyncClientConfig",
    "SyncServerConfig",
    "load_config",
]
