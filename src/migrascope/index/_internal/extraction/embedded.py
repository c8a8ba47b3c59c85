"""Embedded-SQL reconstruction.

SQL in application code is rarely one clean literal: it is concatenated,
appended to a builder, interpolated, or split over an annotation array. This
module finds string-valued expressions, rebuilds the SQL they spell on a
canvas that keeps every character at its host-file row and column, and hands
the result to the SQL extractor.

Reconstruction rules (all byte based):

- fragments are padded with spaces to their absolute start column, and row
  changes become newlines
- quote delimiters (and string prefixes such as ``f`` or ``rb``) become
  spaces of the same width
- interpolations and non-literal operands become ``0`` digits when they fit
  on one line, spaces (newlines kept) otherwise
- escaped ``\\n`` / ``\\r`` sequences are deleted
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from migrascope.index._internal.extraction.sql import index_sql
from migrascope.index._internal.parsing.treesitter import node_text

if TYPE_CHECKING:
    from tree_sitter import Node

    from migrascope.index._internal.parsing.packs import GrammarPack
    from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser
    from migrascope.index.models import InvocationRecord

log = structlog.get_logger(__name__)

SQL_KEYWORD = re.compile(r"^\s*\(?\s*(select|insert|update|delete|with)\b", re.IGNORECASE)

# Placeholder rewrites. Every replacement has the width of what it replaces.
_NAMED_PYFORMAT = re.compile(r"%\(\w+\)s")
_PYFORMAT = re.compile(r"%s")
_NUMBERED = re.compile(r"\$\d+")
_QMARK = re.compile(r"\?")
_NAMED_COLON = re.compile(r"(?<!:):(?=[A-Za-z_])")

_ESCAPED_NEWLINE = re.compile(rb"\\[nr]")
_LEADING_DELIMITER = re.compile(rb"^[A-Za-z]{0,3}(\"\"\"|'''|[\"'`])")
_TRAILING_DELIMITER = re.compile(rb"(\"\"\"|'''|[\"'`])$")


@dataclass(frozen=True, slots=True)
class EmbeddedSql:
    """SQL rebuilt from host-language strings.

    ``row`` and ``column`` are the 0-based position of the first literal
    fragment. ``sql`` keeps host-file columns: its first line is padded up to
    ``column``.
    """

    sql: str
    row: int
    column: int
    fragment_count: int


@dataclass(frozen=True, slots=True)
class _Fragment:
    node: Node
    literal: bool


def _expand(node: Node, pack: GrammarPack) -> list[_Fragment]:
    """Flatten a string-valued expression into literal / opaque fragments."""
    node_type = node.type
    if node_type in pack.string_types:
        return [_Fragment(node, True)]

    if node_type in pack.binary_types:
        operator = node.child_by_field_name("operator")
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if operator is not None and node_text(operator) == "+" and left and right:
            return _expand(left, pack) + _expand(right, pack)
        return [_Fragment(node, False)]

    if node_type in pack.implicit_concat_types:
        fragments: list[_Fragment] = []
        for child in node.named_children:
            if child.type != "comment":
                fragments.extend(_expand(child, pack))
        return fragments

    if node_type == pack.append_call_type:
        name = node.child_by_field_name("name")
        if name is not None and node_text(name) in pack.append_methods:
            fragments = []
            receiver = node.child_by_field_name("object")
            if receiver is not None:
                fragments.extend(_expand(receiver, pack))
            arguments = node.child_by_field_name("arguments")
            if arguments is not None and arguments.named_children:
                fragments.extend(_expand(arguments.named_children[0], pack))
            return fragments

    return [_Fragment(node, False)]


def _blank(buf: bytearray, start: int, end: int) -> None:
    for i in range(max(start, 0), min(end, len(buf))):
        if buf[i] not in (0x0A, 0x0D):
            buf[i] = 0x20


def _erase(buf: bytearray, start: int, end: int) -> None:
    """Erase a span: digits on one line, whitespace across lines."""
    start, end = max(start, 0), min(end, len(buf))
    if b"\n" in buf[start:end]:
        _blank(buf, start, end)
    else:
        buf[start:end] = b"0" * (end - start)


def _literal_canvas(node: Node, pack: GrammarPack) -> bytes:
    buf = bytearray(node.text or b"")
    base = node.start_byte
    children = node.children

    if children:
        for delimiter in {0, len(children) - 1}:
            child = children[delimiter]
            if not child.is_named or child.type in pack.delimiter_types:
                _blank(buf, child.start_byte - base, child.end_byte - base)
        for child in children:
            if child.type in pack.interpolation_types:
                _erase(buf, child.start_byte - base, child.end_byte - base)
    else:
        lead = _LEADING_DELIMITER.match(buf)
        if lead:
            _blank(buf, 0, lead.end())
        trail = _TRAILING_DELIMITER.search(buf)
        if trail and (not lead or trail.start() >= lead.end()):
            _blank(buf, trail.start(), trail.end())

    return _ESCAPED_NEWLINE.sub(b"", bytes(buf))


def _opaque_canvas(node: Node) -> bytes:
    buf = bytearray(node.text or b"")
    _erase(buf, 0, len(buf))
    return bytes(buf)


def reconstruct(fragments: list[_Fragment], pack: GrammarPack) -> str:
    """Lay fragments out on a canvas anchored at the first fragment's row."""
    row = fragments[0].node.start_point[0]
    col = 0
    out = bytearray()
    for fragment in fragments:
        node = fragment.node
        start_row, start_col = node.start_point
        if start_row > row:
            out += b"\n" * (start_row - row)
            row, col = start_row, 0
        if start_col > col:
            out += b" " * (start_col - col)
        out += _literal_canvas(node, pack) if fragment.literal else _opaque_canvas(node)
        # Column tracking stays in host-file coordinates
        row, col = node.end_point
    return out.decode("utf-8", errors="replace")


def normalize_placeholders(sql: str) -> str:
    """Replace bind placeholders with digits the SQL grammar accepts."""
    sql = _NAMED_PYFORMAT.sub(lambda m: "0" * len(m.group()), sql)
    sql = _PYFORMAT.sub("00", sql)
    sql = _NUMBERED.sub(lambda m: "0" * len(m.group()), sql)
    sql = _QMARK.sub("0", sql)
    return _NAMED_COLON.sub(" ", sql)


def find_embedded_sql(parsed: ParseResult, parser: TreeSitterParser) -> list[EmbeddedSql]:
    """Find SQL embedded in a parsed host-language file.

    Matches are keyed by the position of their first literal fragment. When
    several matches share a position (a concatenation and its own left
    operand, or an append chain and its first call) the one with the most
    fragments wins; ties keep the first found.
    """
    pack = parsed.pack
    if not pack.embedded_queries:
        return []

    candidates: dict[tuple[int, int], list[_Fragment]] = {}
    for source in pack.embedded_queries:
        for captures in parser.matches(pack.name, source, parsed.root_node):
            nodes = sorted(
                (n for name, ns in captures.items() if name.startswith("str") for n in ns),
                key=lambda n: n.start_byte,
            )
            fragments = [f for n in nodes for f in _expand(n, pack)]
            while fragments and not fragments[0].literal:
                fragments.pop(0)
            if not fragments:
                continue
            position = fragments[0].node.start_point
            key = (position[0], position[1])
            existing = candidates.get(key)
            if existing is None or len(fragments) > len(existing):
                candidates[key] = fragments

    found: list[EmbeddedSql] = []
    for (row, column), fragments in sorted(candidates.items()):
        sql = reconstruct(fragments, pack)
        if not SQL_KEYWORD.match(sql):
            continue
        found.append(
            EmbeddedSql(
                sql=normalize_placeholders(sql),
                row=row,
                column=column,
                fragment_count=len(fragments),
            )
        )

    log.debug(
        "embedded_sql_found",
        path=parsed.file_path,
        candidates=len(candidates),
        sql=len(found),
    )
    return found


def index_embedded_sql(
    file_path: str,
    parsed: ParseResult,
    parser: TreeSitterParser,
) -> list[InvocationRecord]:
    """Index the tables referenced by SQL embedded in a host-language file."""
    records: list[InvocationRecord] = []
    for embedded in find_embedded_sql(parsed, parser):
        records.extend(index_sql(file_path, embedded.sql, offset=(embedded.row, 0), parser=parser))
    return records
