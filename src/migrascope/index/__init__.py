"""Source indexing: find database entities referenced by application code."""

from migrascope.index._internal.extraction.embedded import (
    EmbeddedSql,
    find_embedded_sql,
    index_embedded_sql,
)
from migrascope.index._internal.extraction.patterns import (
    PATTERN_INDEXERS,
    get_pattern_indexer,
)
from migrascope.index._internal.extraction.sql import index_sql
from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser
from migrascope.index.files import index_files, write_jsonl
from migrascope.index.models import (
    ChangeRecord,
    ColumnRef,
    InvocationRecord,
    SourceUnit,
    Span,
    changes_to_dict,
)

__all__ = [
    "ChangeRecord",
    "ColumnRef",
    "EmbeddedSql",
    "InvocationRecord",
    "PATTERN_INDEXERS",
    "ParseResult",
    "SourceUnit",
    "Span",
    "TreeSitterParser",
    "changes_to_dict",
    "find_embedded_sql",
    "get_pattern_indexer",
    "index_embedded_sql",
    "index_files",
    "index_sql",
    "write_jsonl",
]
