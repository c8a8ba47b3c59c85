"""Pattern indexer protocol and shared base class.

A pattern indexer recognizes one data-access convention (a Java data object,
a query-builder join chain, an ORM table declaration) and reports the
entities and columns it implies. Indexers are stateless; the parser and the
parse result are handed in per file.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser
    from migrascope.index.models import InvocationRecord


@runtime_checkable
class PatternIndexer(Protocol):
    """Protocol for pattern-specific indexers."""

    @property
    def name(self) -> str:
        """Registry key, as used in the ``patterns`` config section."""
        ...

    @property
    def languages(self) -> frozenset[str]:
        """Languages this indexer understands."""
        ...

    def index(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[InvocationRecord]:
        """Index one parsed file. Other languages yield an empty list."""
        ...


class BasePatternIndexer(ABC):
    """Base class that filters on language before delegating."""

    name: str = ""
    languages: frozenset[str] = frozenset()

    def index(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[InvocationRecord]:
        if parsed.language not in self.languages:
            return []
        return self._index(file_path, parsed, parser)

    @abstractmethod
    def _index(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[InvocationRecord]: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
