"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (MIGRASCOPE__SECTION__KEY)
3. Repo YAML (.migrascope.yaml)
4. Global YAML (~/.config/migrascope/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    MIGRASCOPE__<SECTION>__<KEY>=<VALUE>

Examples:
    MIGRASCOPE__LOGGING__LEVEL=DEBUG
    MIGRASCOPE__PATTERNS='{"pojo": ["src/main/java/**/model/*.java"]}'
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        MIGRASCOPE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every skipped string and query.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class MigrascopeConfig(BaseModel):
    """Root configuration for Migrascope.

    ``patterns`` maps a pattern indexer type (``pojo``, ``massive``,
    ``sqlalchemy``) to the globs of repo-relative paths it runs on. Type names
    are checked against the indexer registry when dispatch starts, not here.

    ``migration_paths`` and ``ignore_paths`` are carried for the orchestrator
    that selects files; the analyzers themselves never read them.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    patterns: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Pattern indexer type -> list of globs (repo-relative).",
    )
    migration_paths: list[str] = Field(
        default_factory=list,
        description="Globs of migration files. Excluded from indexing by the orchestrator.",
    )
    ignore_paths: list[str] = Field(
        default_factory=list,
        description="Globs never indexed.",
    )

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        for name, globs in v.items():
            if not globs:
                raise ValueError(f"Pattern type '{name}' has no globs")
        return v
