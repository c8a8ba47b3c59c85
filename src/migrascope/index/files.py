"""File dispatcher: source files in, invocation records out.

``.sql`` files go to the SQL extractor. Every other file with a grammar is
parsed once and handed to the embedded-SQL reconstructor, then to each
configured pattern indexer whose globs match the file's repo-relative path.
"""

from __future__ import annotations

import fnmatch
import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import IO

import structlog

from migrascope.config.models import MigrascopeConfig
from migrascope.core.errors import IndexingError, InternalError
from migrascope.index._internal.extraction.embedded import index_embedded_sql
from migrascope.index._internal.extraction.patterns import PatternIndexer, get_pattern_indexer
from migrascope.index._internal.extraction.sql import index_sql
from migrascope.index._internal.parsing.packs import detect_language
from migrascope.index._internal.parsing.treesitter import TreeSitterParser
from migrascope.index.models import InvocationRecord, SourceUnit

log = structlog.get_logger(__name__)


def _matches_glob(rel_path: str, pattern: str) -> bool:
    """Check if a path matches a glob pattern, segment by segment.

    ``*``, ``?`` and ``[...]`` never match ``/``. A ``**`` segment matches
    zero or more whole segments.
    """
    return _match_segments(rel_path.split("/"), pattern.split("/"))


def _match_segments(parts: list[str], globs: list[str]) -> bool:
    if not globs:
        return not parts
    head, rest = globs[0], globs[1:]
    if head == "**":
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts or not fnmatch.fnmatch(parts[0], head):
        return False
    return _match_segments(parts[1:], rest)


def _relative_path(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def index_files(
    config: MigrascopeConfig,
    working_directory: str | Path,
    files: Iterable[str | Path],
    parser: TreeSitterParser | None = None,
) -> Iterator[InvocationRecord]:
    """Index source files.

    Pattern types are resolved before anything is read, so a misconfigured
    type fails fast. The records themselves are produced lazily, one file at
    a time, and the returned iterator cannot be restarted.

    Args:
        config: Resolved configuration (``patterns`` selects pattern indexers).
        working_directory: Root that record paths are made relative to.
        files: Files to index, absolute or relative to ``working_directory``.
        parser: Shared parser; a private one is created when omitted.

    Raises:
        ConfigError: A configured pattern type has no indexer.
    """
    indexers = [(get_pattern_indexer(name), globs) for name, globs in config.patterns.items()]
    root = Path(working_directory).resolve()
    return _iter_records(root, files, indexers, parser or TreeSitterParser())


def _iter_records(
    root: Path,
    files: Iterable[str | Path],
    indexers: list[tuple[PatternIndexer, list[str]]],
    parser: TreeSitterParser,
) -> Iterator[InvocationRecord]:
    file_count = 0
    record_count = 0

    for file in files:
        path = Path(file)
        if not path.is_absolute():
            path = root / path
        rel_path = _relative_path(path, root)

        language = detect_language(rel_path)
        if language is None or not parser.has_grammar(language):
            log.debug("file_skipped_no_grammar", path=rel_path)
            continue

        try:
            text = path.read_bytes()
        except OSError as e:
            raise IndexingError.unreadable(rel_path, str(e)) from e

        if language == "sql":
            records = index_sql(rel_path, text, parser=parser)
        else:
            try:
                parsed = parser.parse(SourceUnit(path=rel_path, language=language, text=text))
            except ValueError as e:
                raise InternalError.unexpected(str(e), path=rel_path) from e
            records = index_embedded_sql(rel_path, parsed, parser)
            for indexer, globs in indexers:
                if any(_matches_glob(rel_path, g) for g in globs):
                    records.extend(indexer.index(rel_path, parsed, parser))

        file_count += 1
        record_count += len(records)
        log.debug("file_indexed", path=rel_path, language=language, records=len(records))
        yield from records

    log.info("index_complete", files=file_count, records=record_count)


def write_jsonl(records: Iterable[InvocationRecord], stream: IO[str]) -> int:
    """Write records as line-delimited JSON. Returns the number written."""
    count = 0
    for record in records:
        stream.write(json.dumps(record.to_dict()) + "\n")
        count += 1
    return count
