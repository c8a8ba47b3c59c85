"""Config module exports."""

from migrascope.config.loader import load_config
from migrascope.config.models import (
    LoggingConfig,
    LogOutputConfig,
    MigrascopeConfig,
)

__all__ = [
    "load_config",
    "MigrascopeConfig",
    "LoggingConfig",
    "LogOutputConfig",
]
