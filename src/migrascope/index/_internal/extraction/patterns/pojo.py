"""Java data objects (POJOs) as table mappings.

A public class whose private fields mostly have matching public ``getX``
accessors is taken to mirror a table of the same name.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from migrascope.index._internal.extraction.patterns.base import BasePatternIndexer
from migrascope.index._internal.parsing.treesitter import node_text
from migrascope.index.models import ColumnRef, InvocationRecord, Span

if TYPE_CHECKING:
    from tree_sitter import Node

    from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser

CLASS_QUERY = """
(class_declaration
  (modifiers) @mods
  name: (identifier) @name
  body: (class_body) @body)
"""

_ACCESSOR = re.compile(r"^get[A-Z]")


def _has_modifier(node: Node, keyword: str) -> bool:
    for child in node.children:
        if child.type == "modifiers":
            return any(m.type == keyword for m in child.children)
    return False


def _private_fields(body: Node) -> list[str]:
    fields: list[str] = []
    for member in body.named_children:
        if member.type != "field_declaration" or not _has_modifier(member, "private"):
            continue
        for declarator in member.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is not None and node_text(name) not in fields:
                fields.append(node_text(name))
    return fields


def _public_accessors(body: Node) -> set[str]:
    accessors: set[str] = set()
    for member in body.named_children:
        if member.type != "method_declaration" or not _has_modifier(member, "public"):
            continue
        name = member.child_by_field_name("name")
        if name is not None and _ACCESSOR.match(node_text(name)):
            accessors.add(node_text(name).lower())
    return accessors


class PojoIndexer(BasePatternIndexer):
    """Index public Java classes whose fields are exposed through getters."""

    name = "pojo"
    languages = frozenset({"java"})

    def _index(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[InvocationRecord]:
        records: list[InvocationRecord] = []
        for captures in parser.matches(parsed.language, CLASS_QUERY, parsed.root_node):
            mods = captures["mods"][0]
            if not any(m.type == "public" for m in mods.children):
                continue
            name = captures["name"][0]
            body = captures["body"][0]

            fields = _private_fields(body)
            accessors = _public_accessors(body)
            matched = [f for f in fields if f"get{f.lower()}" in accessors]
            # One shared name is too weak a signal
            if len(matched) < 2:
                continue

            records.append(
                InvocationRecord(
                    file_path=file_path,
                    entity=node_text(name),
                    span=Span.from_node(name),
                    column_refs=tuple(ColumnRef(f) for f in matched),
                    confidence=2 * len(matched) / (len(fields) + len(accessors)),
                )
            )
        return records
