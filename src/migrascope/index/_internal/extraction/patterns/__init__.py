"""Pattern indexer registry.

Maps the pattern type names used in configuration to indexer instances.
Adding an idiom means adding an indexer module and one entry here.
"""

from __future__ import annotations

from migrascope.core.errors import ConfigError
from migrascope.index._internal.extraction.patterns.base import (
    BasePatternIndexer,
    PatternIndexer,
)
from migrascope.index._internal.extraction.patterns.massive import MassiveIndexer
from migrascope.index._internal.extraction.patterns.pojo import PojoIndexer
from migrascope.index._internal.extraction.patterns.sqlalchemy import SqlAlchemyIndexer

PATTERN_INDEXERS: dict[str, PatternIndexer] = {
    indexer.name: indexer for indexer in (PojoIndexer(), MassiveIndexer(), SqlAlchemyIndexer())
}


def get_pattern_indexer(name: str) -> PatternIndexer:
    """Look up a pattern indexer by type name.

    Raises:
        ConfigError: No indexer is registered under ``name``.
    """
    indexer = PATTERN_INDEXERS.get(name)
    if indexer is None:
        raise ConfigError.unknown_pattern(name, sorted(PATTERN_INDEXERS))
    return indexer


__all__ = [
    "PATTERN_INDEXERS",
    "BasePatternIndexer",
    "MassiveIndexer",
    "PatternIndexer",
    "PojoIndexer",
    "SqlAlchemyIndexer",
    "get_pattern_indexer",
]
