"""Tree-sitter parsing and query execution.

The parser is created once by the calling pipeline and handed to every
analyzer. It caches one ``tree_sitter.Language`` per grammar and every
compiled query, so analyzers can call ``matches`` freely.

Query patterns are compiled one pattern at a time. A pattern that does not
compile against the installed grammar (node type or field renamed between
grammar releases) is skipped with a debug log instead of failing the run.
"""

from __future__ import annotations

import importlib
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
import tree_sitter
from tree_sitter import Query as _TSQuery
from tree_sitter import QueryCursor as _TSQueryCursor
from tree_sitter import QueryError as _TSQueryError

from migrascope.index._internal.parsing.packs import GrammarPack, get_pack
from migrascope.index.models import SourceUnit

if TYPE_CHECKING:
    from tree_sitter import Node

log = structlog.get_logger(__name__)

Captures = dict[str, list[Any]]

_QUOTE_PAIRS = {'"': '"', "'": "'", "`": "`", "[": "]"}
_STRING_PREFIX = re.compile(r"^[A-Za-z]{0,3}(?=[\"'`])")


@dataclass
class ParseResult:
    """Result of parsing one source unit."""

    unit: SourceUnit
    tree: Any  # Tree-sitter Tree (not serializable)
    pack: GrammarPack

    @property
    def root_node(self) -> Node:
        return self.tree.root_node

    @property
    def language(self) -> str:
        return self.pack.name

    @property
    def file_path(self) -> str:
        return self.unit.path


@dataclass
class TreeSitterParser:
    """
    Tree-sitter parser shared by every analyzer in a run.

    Usage::

        parser = TreeSitterParser()

        # Parse a source unit
        result = parser.parse(SourceUnit("q.sql", "sql", b"select 1"))

        # Run a query
        for captures in parser.matches("sql", "(relation) @rel", result.root_node):
            ...
    """

    _parsers: dict[str, tree_sitter.Parser] = field(default_factory=dict, repr=False)
    _languages: dict[str, tree_sitter.Language] = field(default_factory=dict, repr=False)
    _queries: dict[tuple[str, str], list[_TSQuery]] = field(default_factory=dict, repr=False)

    def has_grammar(self, language: str) -> bool:
        """True when a pack exists for ``language`` and its grammar imports."""
        try:
            self._get_language(language)
        except ValueError:
            return False
        return True

    def _get_language(self, language: str) -> tree_sitter.Language:
        """Get or load a Tree-sitter language."""
        if language in self._languages:
            return self._languages[language]

        pack = get_pack(language)
        if pack is None:
            raise ValueError(f"Language not available: {language}")
        try:
            mod = importlib.import_module(pack.grammar_module)
            lang_fn = getattr(mod, pack.language_func)
            lang = tree_sitter.Language(lang_fn())
        except (ImportError, AttributeError) as err:
            raise ValueError(
                f"Language not available: {language} "
                f"(install {pack.grammar_package}>={pack.min_version})"
            ) from err

        self._languages[language] = lang
        return lang

    def _get_parser(self, language: str) -> tree_sitter.Parser:
        if language not in self._parsers:
            parser = tree_sitter.Parser()
            parser.language = self._get_language(language)
            self._parsers[language] = parser
        return self._parsers[language]

    def parse(self, unit: SourceUnit) -> ParseResult:
        """
        Parse a source unit with Tree-sitter.

        Raises:
            ValueError: No grammar is available for ``unit.language``.
        """
        pack = get_pack(unit.language)
        if pack is None:
            raise ValueError(f"Language not available: {unit.language}")
        tree = self._get_parser(unit.language).parse(unit.text)
        return ParseResult(unit=unit, tree=tree, pack=pack)

    def parse_text(self, language: str, text: str | bytes, path: str = "<string>") -> ParseResult:
        """Parse in-memory text. Convenience wrapper around :meth:`parse`."""
        data = text.encode("utf-8") if isinstance(text, str) else text
        return self.parse(SourceUnit(path=path, language=language, text=data))

    def query(self, language: str, source: str) -> list[_TSQuery]:
        """Compile ``source`` into one query per top-level pattern.

        Patterns that fail to compile are dropped. The result is cached.
        """
        key = (language, source)
        if key in self._queries:
            return self._queries[key]

        lang = self._get_language(language)
        compiled: list[_TSQuery] = []
        for pattern in split_patterns(source):
            try:
                compiled.append(_TSQuery(lang, pattern))
            except _TSQueryError as e:
                log.debug(
                    "query_compile_failed",
                    language=language,
                    pattern=" ".join(pattern.split())[:120],
                    error=str(e),
                )
        self._queries[key] = compiled
        return compiled

    def matches(self, language: str, source: str, node: Node) -> list[Captures]:
        """Run every compiled pattern of ``source`` against ``node``.

        Returns the capture dicts of all matches, in pattern order and then
        match order.
        """
        results: list[Captures] = []
        for query in self.query(language, source):
            cursor = _TSQueryCursor(query)
            results.extend(captures for _, captures in cursor.matches(node))
        return results


# =============================================================================
# Query source helpers
# =============================================================================


def split_patterns(source: str) -> list[str]:
    """Split query source into its top-level patterns.

    A pattern is a balanced parenthesized or bracketed expression together
    with any trailing captures and quantifiers. Comments (``;``) and string
    literals are respected.
    """
    patterns: list[str] = []
    depth = 0
    start: int | None = None
    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == ";":
            if depth == 0 and start is not None:
                patterns.append(source[start:i].strip())
                start = None
            while i < n and source[i] != "\n":
                i += 1
            continue
        if ch == '"':
            i += 1
            while i < n and source[i] != '"':
                i += 2 if source[i] == "\\" else 1
        elif ch in "([":
            if depth == 0:
                if start is not None:
                    patterns.append(source[start:i].strip())
                start = i
            depth += 1
        elif ch in ")]":
            depth -= 1
        i += 1
    if start is not None and source[start:].strip():
        patterns.append(source[start:].strip())
    return patterns


# =============================================================================
# Node helpers
# =============================================================================


def node_text(node: Node) -> str:
    """Decoded text of a node."""
    return node.text.decode("utf-8", errors="replace") if node.text else ""


def unquote(text: str) -> str:
    """Strip a string prefix and one pair of matching quotes or brackets."""
    text = _STRING_PREFIX.sub("", text, count=1)
    if len(text) >= 2:
        closing = _QUOTE_PAIRS.get(text[0])
        if closing is not None and text[-1] == closing:
            return text[1:-1]
    return text


def string_content(node: Node) -> str:
    """Literal value of a string node: its text without prefix and quotes."""
    text = node_text(node)
    for quote in ('"""', "'''"):
        stripped = _STRING_PREFIX.sub("", text, count=1)
        if len(stripped) >= 6 and stripped.startswith(quote) and stripped.endswith(quote):
            return stripped[3:-3]
    return unquote(text)


def ancestor(node: Node, *types: str) -> Node | None:
    """Nearest proper ancestor whose type is one of ``types``."""
    current = node.parent
    while current is not None:
        if current.type in types:
            return current
        current = current.parent
    return None
