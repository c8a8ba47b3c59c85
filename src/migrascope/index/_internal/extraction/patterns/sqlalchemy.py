"""SQLAlchemy table definitions.

Two styles are recognized:

Core (imperative)::

    users = Table("users", metadata, Column("id", Integer), schema="auth")

Declarative::

    class User(Base):
        __tablename__ = "users"
        __table_args__ = {"schema": "auth"}
        id = Column(Integer, primary_key=True)
        name: Mapped[str] = mapped_column()

Declarative classes are matched twice, once without regard to schema and
once requiring a ``__table_args__`` schema. A query cannot express "optional
sibling with a predicate", so the passes are reconciled by the position of
the class name: the with-schema match supersedes the schema-less one. A
with-schema match with no schema-less partner is logged and reported
without its schema.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from migrascope.index._internal.extraction.patterns.base import BasePatternIndexer
from migrascope.index._internal.parsing.treesitter import node_text, string_content
from migrascope.index.models import ColumnRef, InvocationRecord, Span

if TYPE_CHECKING:
    from tree_sitter import Node

    from migrascope.index._internal.parsing.treesitter import (
        Captures,
        ParseResult,
        TreeSitterParser,
    )

log = structlog.get_logger(__name__)

TABLE_CALL_QUERY = """
(call
  function: [(identifier) (attribute)] @table_fn
  arguments: (argument_list . (string) @table) @args)
"""

DECLARATIVE_QUERY = """
((class_definition
   name: (identifier) @ref
   body: (block
     (expression_statement
       (assignment
         left: (identifier) @tablename
         right: (string) @table))) @body)
 (#eq? @tablename "__tablename__"))
"""

# __table_args__ either before or after __tablename__, as a dict or as a
# tuple whose trailing element is the options dict
DECLARATIVE_SCHEMA_QUERY = """
((class_definition
   name: (identifier) @ref
   body: (block
     (expression_statement
       (assignment left: (identifier) @tablename right: (string) @table))
     (expression_statement
       (assignment
         left: (identifier) @tableargs
         right: (dictionary (pair key: (string) @schema_arg value: (string) @schema))))) @body)
 (#eq? @tablename "__tablename__")
 (#eq? @tableargs "__table_args__"))

((class_definition
   name: (identifier) @ref
   body: (block
     (expression_statement
       (assignment
         left: (identifier) @tableargs
         right: (dictionary (pair key: (string) @schema_arg value: (string) @schema))))
     (expression_statement
       (assignment left: (identifier) @tablename right: (string) @table))) @body)
 (#eq? @tablename "__tablename__")
 (#eq? @tableargs "__table_args__"))

((class_definition
   name: (identifier) @ref
   body: (block
     (expression_statement
       (assignment left: (identifier) @tablename right: (string) @table))
     (expression_statement
       (assignment
         left: (identifier) @tableargs
         right: (tuple
           (dictionary (pair key: (string) @schema_arg value: (string) @schema))
           .)))) @body)
 (#eq? @tablename "__tablename__")
 (#eq? @tableargs "__table_args__"))

((class_definition
   name: (identifier) @ref
   body: (block
     (expression_statement
       (assignment
         left: (identifier) @tableargs
         right: (tuple
           (dictionary (pair key: (string) @schema_arg value: (string) @schema))
           .)))
     (expression_statement
       (assignment left: (identifier) @tablename right: (string) @table))) @body)
 (#eq? @tablename "__tablename__")
 (#eq? @tableargs "__table_args__"))
"""

_TABLE_FN = re.compile(r"(^|\.)Table$")
_COLUMN_FN = re.compile(r"(^|\.)(Column|mapped_column)$")


def _column_call_name(call: Node) -> str | None:
    """Explicit name of a ``Column("name", ...)`` call, if given."""
    args = call.child_by_field_name("arguments")
    if args is None or not args.named_children:
        return None
    first = args.named_children[0]
    return string_content(first) if first.type == "string" else None


def _is_column_call(node: Node | None) -> bool:
    if node is None or node.type != "call":
        return False
    fn = node.child_by_field_name("function")
    return fn is not None and bool(_COLUMN_FN.search(node_text(fn)))


def _class_columns(body: Node) -> list[str]:
    """Names of Column-producing attribute assignments in a class body."""
    columns: list[str] = []
    for statement in body.named_children:
        if statement.type != "expression_statement" or not statement.named_children:
            continue
        assignment = statement.named_children[0]
        if assignment.type != "assignment":
            continue
        left = assignment.child_by_field_name("left")
        right = assignment.child_by_field_name("right")
        if left is None or left.type != "identifier" or not _is_column_call(right):
            continue
        name = _column_call_name(right) or node_text(left)
        if name not in columns:
            columns.append(name)
    return columns


def _qualified(schema: str | None, table: str) -> str:
    return f"{schema}.{table}" if schema else table


class SqlAlchemyIndexer(BasePatternIndexer):
    """Index SQLAlchemy Core tables and declarative models."""

    name = "sqlalchemy"
    languages = frozenset({"python"})

    def _index(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[InvocationRecord]:
        found = self._core_tables(file_path, parsed, parser)
        found.extend(self._declarative_tables(file_path, parsed, parser))
        found.sort(key=lambda pair: pair[0])
        return [record for _, record in found]

    def _core_tables(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[tuple[int, InvocationRecord]]:
        found: list[tuple[int, InvocationRecord]] = []
        for captures in parser.matches(parsed.language, TABLE_CALL_QUERY, parsed.root_node):
            if not _TABLE_FN.search(node_text(captures["table_fn"][0])):
                continue
            table = captures["table"][0]
            schema: str | None = None
            columns: list[str] = []
            for arg in captures["args"][0].named_children:
                if _is_column_call(arg):
                    name = _column_call_name(arg)
                    if name and name not in columns:
                        columns.append(name)
                elif arg.type == "keyword_argument":
                    key = arg.child_by_field_name("name")
                    value = arg.child_by_field_name("value")
                    if key is not None and node_text(key) == "schema" and value is not None:
                        if value.type == "string":
                            schema = string_content(value)

            found.append(
                (
                    table.start_byte,
                    InvocationRecord(
                        file_path=file_path,
                        entity=_qualified(schema, string_content(table)),
                        span=Span.from_node(table),
                        column_refs=tuple(ColumnRef(c) for c in columns),
                    ),
                )
            )
        return found

    def _declarative_tables(
        self,
        file_path: str,
        parsed: ParseResult,
        parser: TreeSitterParser,
    ) -> list[tuple[int, InvocationRecord]]:
        root = parsed.root_node

        schemaless: dict[tuple[int, int], Captures] = {}
        for captures in parser.matches(parsed.language, DECLARATIVE_QUERY, root):
            schemaless.setdefault(captures["ref"][0].start_point, captures)

        with_schema: dict[tuple[int, int], Captures] = {}
        for captures in parser.matches(parsed.language, DECLARATIVE_SCHEMA_QUERY, root):
            if string_content(captures["schema_arg"][0]) != "schema":
                continue
            with_schema.setdefault(captures["ref"][0].start_point, captures)

        found: list[tuple[int, InvocationRecord]] = []
        for anchor in schemaless.keys() | with_schema.keys():
            chosen = with_schema.get(anchor) or schemaless[anchor]
            schema: str | None = None
            if anchor not in schemaless:
                log.warning(
                    "orm_schema_match_unreconciled",
                    path=file_path,
                    row=anchor[0] + 1,
                    column=anchor[1] + 1,
                )
            elif chosen.get("schema"):
                schema = string_content(chosen["schema"][0])
            table = chosen["table"][0]
            found.append(
                (
                    table.start_byte,
                    InvocationRecord(
                        file_path=file_path,
                        entity=_qualified(schema, string_content(table)),
                        span=Span.from_node(table),
                        column_refs=tuple(ColumnRef(c) for c in _class_columns(chosen["body"][0])),
                    ),
                )
            )
        return found
