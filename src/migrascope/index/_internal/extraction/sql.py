"""SQL table/column extraction.

Finds every table reference in a piece of SQL text and attributes the
statement's column references to it:

- columns qualified by the table's alias or name are certain (1.0)
- unqualified columns are shared between all N tables of the statement and
  get confidence 1/N
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from migrascope.index._internal.parsing.treesitter import (
    TreeSitterParser,
    ancestor,
    node_text,
    unquote,
)
from migrascope.index.models import ColumnRef, InvocationRecord, Span

if TYPE_CHECKING:
    from tree_sitter import Node

log = structlog.get_logger(__name__)

# Statements whose direct object_reference child is a table/view reference.
# Compiled one pattern at a time; patterns unknown to the grammar are dropped.
TABLE_QUERY = """
(relation (object_reference) @table)
(insert (object_reference) @table)
(from (object_reference) @table)
(update (object_reference) @table)
(create_table (object_reference) @table)
(alter_table (object_reference) @table)
(drop_table (object_reference) @table)
(create_view (object_reference) @table)
(alter_view (object_reference) @table)
(drop_view (object_reference) @table)
(create_index (object_reference) @table)
"""

COLUMN_QUERY = """
(field) @field
(column) @column
"""

ALL_FIELDS_QUERY = """
(all_fields) @star
"""

_ALIAS_PARENTS = ("relation", "insert")


@dataclass
class _Statement:
    """Table and column references collected for one statement."""

    tables: list[Node] = field(default_factory=list)
    # qualifier ("" when unqualified) -> column names, insertion ordered
    columns: dict[str, dict[str, None]] = field(default_factory=dict)
    star: bool = False
    star_qualifiers: set[str] = field(default_factory=set)

    def add_column(self, qualifier: str, name: str) -> None:
        self.columns.setdefault(qualifier, {})[name] = None

    def columns_for(self, qualifier: str | None) -> Iterable[str]:
        if qualifier is None:
            return ()
        return self.columns.get(qualifier, {}).keys()


def object_name(node: Node) -> str:
    """De-quoted ``[database.][schema.]name`` of an object_reference."""
    parts = [
        node.child_by_field_name(part) for part in ("database", "schema", "name")
    ]
    names = [unquote(node_text(p)) for p in parts if p is not None]
    if not names:
        return ".".join(unquote(p) for p in node_text(node).split("."))
    return ".".join(names)


def _alias_of(ref: Node) -> str | None:
    parent = ref.parent
    if parent is None or parent.type not in _ALIAS_PARENTS:
        return None
    alias = parent.child_by_field_name("alias")
    if alias is None and parent.type == "relation":
        sibling = ref.next_named_sibling
        if sibling is not None and sibling.type == "identifier":
            alias = sibling
    return unquote(node_text(alias)) if alias is not None else None


def _column_name(node: Node) -> str | None:
    name = node.child_by_field_name("name")
    if name is None:
        identifiers = [c for c in node.named_children if c.type == "identifier"]
        name = identifiers[-1] if identifiers else None
    text = node_text(name) if name is not None else node_text(node)
    text = unquote(text.strip())
    return text or None


def _qualifier(node: Node) -> str:
    for child in node.named_children:
        if child.type == "object_reference":
            return object_name(child)
    return ""


def _has_statement(node: Node) -> bool:
    if node.type == "statement":
        return True
    return any(_has_statement(child) for child in node.named_children)


def _is_unparseable(root: Node) -> bool:
    """Input that never formed a statement is not SQL.

    ``update the thing`` parses as an ERROR holding a keyword and a relation;
    no statement node exists anywhere in it.
    """
    if root.child_count == 0:
        return True
    error = root if root.type == "ERROR" else None
    if error is None and root.child_count == 1 and root.children[0].type == "ERROR":
        error = root.children[0]
    if error is None:
        return False
    return error.child_count < 2 or not _has_statement(error)


def index_sql(
    file_path: str,
    code: str | bytes,
    offset: tuple[int, int] = (0, 0),
    parser: TreeSitterParser | None = None,
) -> list[InvocationRecord]:
    """Index table references (and their columns) in SQL text.

    Args:
        file_path: Path reported on every record.
        code: SQL text.
        offset: (rows, columns) added to every position, for SQL lifted out
            of a host file.
        parser: Shared parser; a private one is created when omitted.

    Returns:
        One record per table reference, in document order. Text that does
        not parse as SQL yields an empty list.
    """
    parser = parser or TreeSitterParser()
    result = parser.parse_text("sql", code, path=file_path)
    root = result.root_node

    if _is_unparseable(root):
        log.debug("sql_unparseable", path=file_path, row=offset[0])
        return []

    statements: dict[tuple[int, int], _Statement] = {}

    def statement_of(node: Node) -> _Statement:
        owner = ancestor(node, "statement") or root
        key = (owner.start_byte, owner.end_byte)
        if key not in statements:
            statements[key] = _Statement()
        return statements[key]

    seen: set[tuple[int, int]] = set()
    for captures in parser.matches("sql", TABLE_QUERY, root):
        for ref in captures.get("table", []):
            key = (ref.start_byte, ref.end_byte)
            if key in seen:
                continue
            seen.add(key)
            statement_of(ref).tables.append(ref)

    for captures in parser.matches("sql", COLUMN_QUERY, root):
        for node in captures.get("field", []):
            name = _column_name(node)
            if name:
                statement_of(node).add_column(_qualifier(node), name)
        for node in captures.get("column", []):
            name = _column_name(node)
            if name:
                statement_of(node).add_column("", name)

    for captures in parser.matches("sql", ALL_FIELDS_QUERY, root):
        for node in captures.get("star", []):
            stmt = statement_of(node)
            qualifier = _qualifier(node)
            if qualifier:
                stmt.star_qualifiers.add(qualifier)
            else:
                stmt.star = True

    records: list[tuple[int, InvocationRecord]] = []
    for stmt in statements.values():
        for ref in stmt.tables:
            records.append((ref.start_byte, _record(file_path, ref, stmt, offset)))

    records.sort(key=lambda pair: pair[0])
    return [record for _, record in records]


def _record(
    file_path: str,
    ref: Node,
    stmt: _Statement,
    offset: tuple[int, int],
) -> InvocationRecord:
    entity = object_name(ref)
    alias = _alias_of(ref)
    bare = entity.rsplit(".", 1)[-1]
    names = {n for n in (alias, entity, bare) if n}

    column_refs: dict[str, ColumnRef] = {}
    for qualifier in (alias, entity, bare if bare != entity else None):
        for name in stmt.columns_for(qualifier):
            column_refs.setdefault(name, ColumnRef(name, 1.0))

    share = 1.0 / max(len(stmt.tables), 1)
    for name in stmt.columns_for(""):
        column_refs.setdefault(name, ColumnRef(name, share))

    return InvocationRecord(
        file_path=file_path,
        entity=entity,
        span=Span.from_node(ref, offset),
        column_refs=tuple(column_refs.values()),
        is_all_columns=stmt.star or bool(names & stmt.star_qualifiers),
        confidence=1.0,
        join=False,
    )
