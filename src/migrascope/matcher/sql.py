"""Structural changes in migration SQL.

Only the changed entity and the kind of change are reported. Which columns
an ALTER touches is not examined.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

import structlog

from migrascope.index._internal.extraction.sql import object_name
from migrascope.index._internal.parsing.treesitter import TreeSitterParser, node_text, unquote
from migrascope.index.models import ChangeKind, ChangeRecord, EntityReference, Span

if TYPE_CHECKING:
    from tree_sitter import Node

log = structlog.get_logger(__name__)

CHANGE_QUERY = """
(drop_table (object_reference) @ref) @kind
(alter_table (object_reference) @ref) @kind
(drop_view (object_reference) @ref) @kind
(alter_view (object_reference) @ref) @kind
"""

# node types of the ", b, c" tail the grammar leaves unparsed after
# DROP TABLE a
_LIST_TOKENS = frozenset({",", ".", "identifier", "object_reference"})


def _trailing_error(kind: Node) -> Node | None:
    """The ERROR node holding the rest of a multi-object DROP, if any."""
    candidates = [kind.children[-1] if kind.children else None, kind.next_sibling]
    if kind.parent is not None and kind.parent.type == "statement":
        candidates.append(kind.parent.next_sibling)
    for node in candidates:
        if node is not None and node.type == "ERROR":
            return node
    return None


def _leaves(node: Node) -> list[Node]:
    if node.type in ("identifier", "object_reference") or not node.children:
        return [node]
    return [leaf for child in node.children for leaf in _leaves(child)]


def _span_between(first: Node, last: Node) -> Span:
    return Span(
        x1=first.start_point[1] + 1,
        y1=first.start_point[0] + 1,
        x2=last.end_point[1] + 1,
        y2=last.end_point[0] + 1,
    )


def _listed_objects(error: Node) -> list[tuple[int, str, Span]]:
    """``(start_byte, name, span)`` for each name in a ``, a, s.b`` tail.

    Stops at the first keyword (``CASCADE``) or ``;``. A tail holding any
    other token is not a name list and yields nothing.
    """
    groups: list[list[Node]] = [[]]
    for leaf in _leaves(error):
        if leaf.type == ";" or leaf.type.startswith("keyword_"):
            break
        if leaf.type not in _LIST_TOKENS:
            return []
        if leaf.type == ",":
            groups.append([])
        else:
            groups[-1].append(leaf)

    objects: list[tuple[int, str, Span]] = []
    for group in groups:
        names = [n for n in group if n.type != "."]
        if not names:
            continue
        if len(names) == 1 and names[0].type == "object_reference":
            name = object_name(names[0])
        else:
            name = ".".join(unquote(node_text(n)) for n in names)
        objects.append((group[0].start_byte, name, _span_between(group[0], group[-1])))
    return objects


def match_sql(
    text: str | bytes,
    parser: TreeSitterParser | None = None,
) -> dict[EntityReference, list[ChangeRecord]]:
    """Find the tables and views a migration alters or drops.

    Returns:
        Entity -> changes, both in the order the references appear.
        ``DROP TABLE a, b`` yields one change for each table.
    """
    parser = parser or TreeSitterParser()
    root = parser.parse_text("sql", text).root_node

    found: list[tuple[int, str, ChangeKind, Span]] = []
    for captures in parser.matches("sql", CHANGE_QUERY, root):
        kind = captures["kind"][0]
        change = cast(ChangeKind, kind.type)
        for ref in captures.get("ref", []):
            found.append((ref.start_byte, object_name(ref), change, Span.from_node(ref)))
        if change in ("drop_table", "drop_view"):
            error = _trailing_error(kind)
            if error is not None:
                found.extend(
                    (start, name, change, span) for start, name, span in _listed_objects(error)
                )
    found.sort(key=lambda item: item[0])

    changes: dict[EntityReference, list[ChangeRecord]] = {}
    seen: set[int] = set()
    for start, name, change, span in found:
        if start in seen:
            continue
        seen.add(start)
        changes.setdefault(name, []).append(ChangeRecord(kind=change, span=span))
    log.debug("migration_matched", entities=len(changes), changes=len(seen))
    return changes
