"""Migration file matching."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog

from migrascope.core.errors import IndexingError
from migrascope.index._internal.parsing.treesitter import TreeSitterParser
from migrascope.index.models import MigrationResult
from migrascope.matcher.sql import match_sql

log = structlog.get_logger(__name__)


def match_migrations(
    paths: Iterable[str | Path],
    parser: TreeSitterParser | None = None,
) -> MigrationResult:
    """Match every migration file.

    Args:
        paths: Migration files, read as UTF-8.
        parser: Shared parser; a private one is created when omitted.

    Returns:
        Path (as given) -> entity -> changes.

    Raises:
        IndexingError: A migration file cannot be read.
    """
    parser = parser or TreeSitterParser()
    result: MigrationResult = {}
    for path in paths:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IndexingError.unreadable(str(path), str(e)) from e
        result[str(path)] = match_sql(text, parser=parser)
        log.info("migration_matched_file", path=str(path), entities=len(result[str(path)]))
    return result
