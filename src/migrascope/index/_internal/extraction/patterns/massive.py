"""Massive.js data-access calls.

Recognized shapes (``ctx`` and ``schema`` optional)::

    ctx.db.schema.table.find({criteria}, options)
    ctx.db.schema.table.join(definition).find({criteria})

A join definition is either a string naming one more table, or an object
whose object-valued properties declare joined aliases, at any depth::

    db.orders.join({
      customers: {relation: "customer", on: {"customers.id": "orders.customer_id"}}
    })

``relation`` overrides the reported entity, ``on`` keys and values are
column names (a dotted ``table.column`` belongs to ``table``), and criteria
keys of the trailing call go to the origin table, or to the alias their
dotted prefix names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from migrascope.index._internal.extraction.patterns.base import BasePatternIndexer
from migrascope.index._internal.parsing.treesitter import node_text, string_content
from migrascope.index.models import ColumnRef, InvocationRecord, Span

if TYPE_CHECKING:
    from tree_sitter import Node

    from migrascope.index._internal.parsing.treesitter import ParseResult, TreeSitterParser

JOIN_QUERY = """
((call_expression
   function: (member_expression
     object: (member_expression
       object: (_) @target
       property: (property_identifier) @table)
     property: (property_identifier) @join)
   arguments: (arguments) @joinargs) @call
 (#eq? @join "join"))
"""

CALL_QUERY = """
(call_expression
  function: (member_expression
    object: (member_expression
      object: (_) @target
      property: (property_identifier) @table)
    property: (property_identifier) @fn)
  arguments: (arguments) @args) @call
"""

# Keys of a join descriptor that configure the join rather than name an alias
OPTION_KEYS = frozenset({"on", "type", "omit", "pk", "decomposeTo", "relation"})

_GROUPING_TYPES = ("object", "array")


@dataclass
class JoinTarget:
    """A table taking part in one join chain."""

    columns: dict[str, None] = field(default_factory=dict)
    span: Span | None = None
    name: str | None = None
    declared: bool = False

    def add(self, column: str) -> None:
        if column:
            self.columns[column] = None


def _member_chain(node: Node) -> list[str] | None:
    """``a.b.c`` -> ["a", "b", "c"]; None for anything but plain member access."""
    if node.type in ("identifier", "this"):
        return [node_text(node)]
    if node.type == "member_expression":
        obj = node.child_by_field_name("object")
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        head = _member_chain(obj)
        return head + [node_text(prop)] if head is not None else None
    return None


def _schema_of(target: Node) -> tuple[bool, str | None]:
    """Whether ``target`` is a database handle, and the schema it selects."""
    chain = _member_chain(target)
    if not chain:
        return False, None
    if chain[-1] == "db":
        return True, None
    if len(chain) >= 2 and chain[-2] == "db":
        return True, chain[-1]
    return False, None


def _key_text(key: Node) -> str:
    if key.type == "string":
        return string_content(key)
    return node_text(key)


def _pairs(obj: Node) -> list[tuple[Node, Node | None]]:
    """(key, value) nodes of an object literal; shorthand properties have no value."""
    pairs: list[tuple[Node, Node | None]] = []
    for child in obj.named_children:
        if child.type == "pair":
            key = child.child_by_field_name("key")
            if key is not None:
                pairs.append((key, child.child_by_field_name("value")))
        elif child.type == "shorthand_property_identifier":
            pairs.append((child, None))
    return pairs


def _criteria_columns(obj: Node) -> list[str]:
    """Column names of a criteria object: the first token of each key."""
    columns: list[str] = []
    for key, value in _pairs(obj):
        if value is not None and value.type in _GROUPING_TYPES:
            continue
        tokens = _key_text(key).split()
        if tokens and tokens[0] not in columns:
            columns.append(tokens[0])
    return columns


def _trailing_call(join_call: Node) -> Node | None:
    """The ``.fn(args)`` call chained onto a join call, if any."""
    member = join_call.parent
    if member is None or member.type != "member_expression":
        return None
    call = member.parent
    if call is None or call.type != "call_expression":
        return None
    if call.child_by_field_name("function") != member:
        return None
    return call


def _first_argument(args: Node | None) -> Node | None:
    if args is None:
        return None
    for child in args.named_children:
        if child.type != "comment":
            return child
    return None


class MassiveIndexer(BasePatternIndexer):
    """Index Massive.js table accessors and join chains."""

    name = "massive"
    languages = frozenset({"javascript"})

    def _index(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[InvocationRecord]:
        root = parsed.root_node
        found: list[tuple[int, InvocationRecord]] = []

        for captures in parser.matches(parsed.language, JOIN_QUERY, root):
            is_db, schema = _schema_of(captures["target"][0])
            if not is_db:
                continue
            call = captures["call"][0]
            for record in self._join_records(file_path, captures, schema):
                found.append((call.start_byte, record))

        for captures in parser.matches(parsed.language, CALL_QUERY, root):
            if node_text(captures["fn"][0]) == "join":
                continue
            is_db, schema = _schema_of(captures["target"][0])
            if not is_db:
                continue
            table = captures["table"][0]
            criteria = _first_argument(captures["args"][0])
            column_refs = None
            if criteria is not None and criteria.type == "object":
                column_refs = tuple(ColumnRef(c) for c in _criteria_columns(criteria))
            entity = node_text(table)
            found.append(
                (
                    captures["call"][0].start_byte,
                    InvocationRecord(
                        file_path=file_path,
                        entity=f"{schema}.{entity}" if schema else entity,
                        span=Span.from_node(table),
                        column_refs=column_refs,
                    ),
                )
            )

        found.sort(key=lambda pair: pair[0])
        return [record for _, record in found]

    def _join_records(
        self,
        file_path: str,
        captures: dict[str, list[Node]],
        schema: str | None,
    ) -> list[InvocationRecord]:
        table = captures["table"][0]
        origin = node_text(table)
        targets: dict[str, JoinTarget] = {
            origin: JoinTarget(
                span=Span.from_node(table),
                name=f"{schema}.{origin}" if schema else None,
                declared=True,
            )
        }

        definition = _first_argument(captures["joinargs"][0])
        if definition is not None and definition.type in ("string", "template_string"):
            targets.setdefault(
                string_content(definition),
                JoinTarget(span=Span.from_node(definition), declared=True),
            )
        elif definition is not None and definition.type == "object":
            self._read_descriptor(definition, targets)

        trailing = _trailing_call(captures["call"][0])
        criteria = _first_argument(trailing.child_by_field_name("arguments")) if trailing else None
        if criteria is not None and criteria.type == "object":
            for column in _criteria_columns(criteria):
                prefix, _, bare = column.rpartition(".")
                if not prefix:
                    targets[origin].add(column)
                elif prefix in targets:
                    targets[prefix].add(bare)

        records: list[InvocationRecord] = []
        for key, target in targets.items():
            if target.span is None:
                continue
            records.append(
                InvocationRecord(
                    file_path=file_path,
                    entity=target.name or key,
                    span=target.span,
                    column_refs=tuple(ColumnRef(c) for c in target.columns),
                    join=key != origin,
                )
            )
        return records

    def _read_descriptor(self, definition: Node, targets: dict[str, JoinTarget]) -> None:
        for key, value in _pairs(definition):
            alias = _key_text(key)
            if alias in OPTION_KEYS or value is None or value.type != "object":
                continue

            target = targets.setdefault(alias, JoinTarget())
            if not target.declared:
                target.span = Span.from_node(key)
                target.declared = True

            for option, setting in _pairs(value):
                option_name = _key_text(option)
                if setting is None:
                    continue
                if option_name == "relation" and setting.type == "string":
                    target.name = string_content(setting)
                elif option_name == "on" and setting.type == "object":
                    for column, mention in self._on_columns(setting):
                        prefix, _, bare = column.rpartition(".")
                        if not prefix:
                            target.add(column)
                            continue
                        owner = targets.setdefault(prefix, JoinTarget())
                        if owner.span is None:
                            owner.span = Span.from_node(mention)
                        owner.add(bare)

            # aliases nested in a descriptor join through it
            self._read_descriptor(value, targets)

    @staticmethod
    def _on_columns(on: Node) -> list[tuple[str, Node]]:
        """Column names in an ``on`` mapping, with the node that mentions each."""
        columns: list[tuple[str, Node]] = []
        for key, value in _pairs(on):
            columns.append((_key_text(key), key))
            if value is not None and value.type == "string":
                columns.append((string_content(value), value))
        return columns
