"""Core module exports."""

from migrascope.core.errors import (
    ConfigError,
    ErrorCode,
    IndexingError,
    InternalError,
    MigrascopeError,
)
from migrascope.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)

__all__ = [
    # Errors
    "MigrascopeError",
    "ConfigError",
    "ErrorCode",
    "IndexingError",
    "InternalError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
]
